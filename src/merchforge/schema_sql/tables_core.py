"""CREATE TABLE statements for users, subscriptions, and the credit ledger."""

USERS = """
CREATE TABLE users (
    user_id     UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    email       VARCHAR(320) NOT NULL UNIQUE,
    username    VARCHAR(40) UNIQUE,
    full_name   VARCHAR(120),
    created_at  TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

SUBSCRIPTIONS = """
CREATE TABLE subscriptions (
    subscription_id   UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id           UUID NOT NULL UNIQUE REFERENCES users(user_id),
    plan              VARCHAR(20) NOT NULL
                      CONSTRAINT ck_subscription_plan
                      CHECK (plan IN ('FREE', 'PRO', 'BUSINESS')),
    status            VARCHAR(20) NOT NULL,
    monthly_credits   INTEGER NOT NULL,
    remaining_credits INTEGER NOT NULL
                      CONSTRAINT ck_subscription_credits_non_negative
                      CHECK (remaining_credits >= 0),
    created_at        TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at        TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

CREDIT_USAGES = """
CREATE TABLE credit_usages (
    usage_id       UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id        UUID NOT NULL REFERENCES users(user_id),
    generation_id  UUID REFERENCES generations(generation_id),
    usage_type     VARCHAR(30) NOT NULL
                   CONSTRAINT ck_credit_usage_type
                   CHECK (usage_type IN (
                       'GENERATION','UPSCALE','REMOVE_BACKGROUND','TOP_UP'
                   )),
    delta          INTEGER NOT NULL,
    balance_after  INTEGER NOT NULL
                   CONSTRAINT ck_credit_usage_balance CHECK (balance_after >= 0),
    description    TEXT NOT NULL,
    metadata       JSONB,
    created_at     TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

# credit_usages references generations, so it is created after tables_design.
ALL = [
    USERS,
    SUBSCRIPTIONS,
]

LEDGER = [
    CREDIT_USAGES,
]
