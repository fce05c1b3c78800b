"""All CREATE INDEX statements for the initial schema."""

ALL = [
    # credit_usages
    "CREATE INDEX idx_credit_usage_user ON credit_usages(user_id, created_at DESC);",
    "CREATE INDEX idx_credit_usage_generation ON credit_usages(generation_id) "
    "WHERE generation_id IS NOT NULL;",
    # designs
    "CREATE INDEX idx_designs_user_recent ON designs(user_id, created_at DESC);",
    # generations
    "CREATE INDEX idx_generations_design ON generations(design_id, created_at DESC);",
    "CREATE INDEX idx_generations_user ON generations(user_id, created_at DESC);",
    # mockups
    "CREATE INDEX idx_mockups_user ON mockups(user_id, updated_at DESC);",
    # store_products
    "CREATE INDEX idx_store_products_active ON store_products(owner_id, status) "
    "WHERE status = 'ACTIVE';",
    # orders
    "CREATE INDEX idx_orders_seller ON orders(seller_id, created_at DESC);",
    "CREATE INDEX idx_orders_buyer ON orders(buyer_id, created_at DESC) "
    "WHERE buyer_id IS NOT NULL;",
]
