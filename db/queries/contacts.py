"""
SQL for contact persistence and blocklist lookups.

Positional parameters ($1, $2, ...) as asyncpg expects. Tables live in the
schema set on the connection's search_path.
"""

# Upsert one selected contact for a prospect.
# Keeps existing name/role when the new row has none and never downgrades
# a better stored score.
# Params: (prospect_id, email, name, role, title, confidence_tier,
#          confidence_score, source, linkedin_url, verification_status,
#          verified, source_metadata::jsonb)
UPSERT_CONTACT = """
INSERT INTO contacts (
    prospect_id, email, name, role, title, confidence_tier,
    confidence_score, source, linkedin_url, verification_status,
    verified, source_metadata
)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12::jsonb)
ON CONFLICT (prospect_id, email) DO UPDATE SET
    name = COALESCE(EXCLUDED.name, contacts.name),
    role = COALESCE(EXCLUDED.role, contacts.role),
    title = COALESCE(EXCLUDED.title, contacts.title),
    confidence_tier = CASE
        WHEN EXCLUDED.confidence_score > contacts.confidence_score
        THEN EXCLUDED.confidence_tier
        ELSE contacts.confidence_tier
    END,
    confidence_score = GREATEST(EXCLUDED.confidence_score, contacts.confidence_score),
    verification_status = COALESCE(EXCLUDED.verification_status, contacts.verification_status),
    verified = contacts.verified OR EXCLUDED.verified
RETURNING id
"""

# Params: (email)
IS_EMAIL_BLOCKED = """
SELECT EXISTS(
    SELECT 1 FROM blocklist WHERE type = 'email' AND value = $1
) AS blocked
"""

# Params: (domain)
IS_DOMAIN_BLOCKED = """
SELECT EXISTS(
    SELECT 1 FROM blocklist WHERE type = 'domain' AND value = $1
) AS blocked
"""
