"""CREATE TABLE statements for designs, generations, and mockups."""

DESIGNS = """
CREATE TABLE designs (
    design_id           UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id             UUID NOT NULL REFERENCES users(user_id),
    title               VARCHAR(200) NOT NULL,
    prompt              TEXT NOT NULL,
    style_preset        VARCHAR(40),
    color_palette       JSONB NOT NULL DEFAULT '[]'::jsonb,
    reference_image_url TEXT,
    primary_image_url   TEXT,
    thumbnail_url       TEXT,
    status              VARCHAR(20) NOT NULL
                        CONSTRAINT ck_design_status
                        CHECK (status IN (
                            'DRAFT','GENERATED','PUBLISHED','ARCHIVED','FAILED'
                        )),
    version             INTEGER NOT NULL DEFAULT 1
                        CONSTRAINT ck_design_version_positive CHECK (version >= 1),
    metadata            JSONB,
    created_at          TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at          TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

GENERATIONS = """
CREATE TABLE generations (
    generation_id       UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id             UUID NOT NULL REFERENCES users(user_id),
    design_id           UUID NOT NULL REFERENCES designs(design_id),
    provider            VARCHAR(20) NOT NULL,
    model               VARCHAR(80) NOT NULL,
    prompt              TEXT NOT NULL,
    reference_image_url TEXT,
    color_palette       JSONB NOT NULL DEFAULT '[]'::jsonb,
    variation_count     INTEGER NOT NULL,
    status              VARCHAR(20) NOT NULL,
    progress            INTEGER NOT NULL DEFAULT 0,
    output_urls         JSONB NOT NULL DEFAULT '[]'::jsonb,
    cost_credits        INTEGER NOT NULL
                        CONSTRAINT ck_generation_cost_non_negative
                        CHECK (cost_credits >= 0),
    metadata            JSONB,
    created_at          TIMESTAMPTZ NOT NULL DEFAULT now(),
    completed_at        TIMESTAMPTZ
);
"""

MOCKUPS = """
CREATE TABLE mockups (
    mockup_id       UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id         UUID NOT NULL REFERENCES users(user_id),
    design_id       UUID REFERENCES designs(design_id) ON DELETE SET NULL,
    name            VARCHAR(120) NOT NULL,
    garment_type    VARCHAR(20) NOT NULL,
    garment_color   VARCHAR(7) NOT NULL,
    canvas_state    JSONB NOT NULL,
    preview_url     TEXT,
    print_ready_url TEXT,
    dpi             INTEGER,
    status          VARCHAR(20) NOT NULL
                    CONSTRAINT ck_mockup_status
                    CHECK (status IN ('DRAFT','READY','EXPORTED')),
    metadata        JSONB,
    created_at      TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at      TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

ALL = [
    DESIGNS,
    GENERATIONS,
    MOCKUPS,
]
