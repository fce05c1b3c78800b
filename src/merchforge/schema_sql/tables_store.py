"""CREATE TABLE statements for storefront products and orders."""

STORE_PRODUCTS = """
CREATE TABLE store_products (
    product_id    UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    owner_id      UUID NOT NULL REFERENCES users(user_id),
    design_id     UUID REFERENCES designs(design_id) ON DELETE SET NULL,
    slug          VARCHAR(64) NOT NULL,
    title         VARCHAR(200) NOT NULL,
    description   TEXT,
    price_cents   INTEGER NOT NULL
                  CONSTRAINT ck_store_product_price CHECK (price_cents >= 0),
    currency      VARCHAR(3) NOT NULL DEFAULT 'USD',
    status        VARCHAR(20) NOT NULL,
    pod_provider  VARCHAR(20) NOT NULL DEFAULT 'NONE',
    images        JSONB NOT NULL DEFAULT '[]'::jsonb,
    metadata      JSONB,
    created_at    TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at    TIMESTAMPTZ NOT NULL DEFAULT now(),
    CONSTRAINT uq_store_product_owner_slug UNIQUE (owner_id, slug)
);
"""

ORDERS = """
CREATE TABLE orders (
    order_id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    buyer_id              UUID REFERENCES users(user_id),
    seller_id             UUID NOT NULL REFERENCES users(user_id),
    store_product_id      UUID REFERENCES store_products(product_id),
    status                VARCHAR(20) NOT NULL
                          CONSTRAINT ck_order_status
                          CHECK (status IN (
                              'PENDING','PAID','FULFILLMENT','IN_PRODUCTION',
                              'SHIPPED','DELIVERED','CANCELED','REFUNDED'
                          )),
    payment_status        VARCHAR(20) NOT NULL
                          CONSTRAINT ck_order_payment_status
                          CHECK (payment_status IN ('PENDING','PAID','FAILED','REFUNDED')),
    amount_subtotal_cents INTEGER NOT NULL,
    amount_total_cents    INTEGER NOT NULL,
    currency              VARCHAR(3) NOT NULL DEFAULT 'USD',
    shipping_address      JSONB,
    metadata              JSONB,
    created_at            TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at            TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

ALL = [
    STORE_PRODUCTS,
    ORDERS,
]
