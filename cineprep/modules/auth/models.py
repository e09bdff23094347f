# Supabase Auth + public.users mirror
# Supabase Auth (auth.users) is the identity provider; every Firebase login is
# bridged into it and mirrored into public.users, which the other tables
# reference by id.

"""
Expected Supabase table structure:

users:
- id: uuid (primary key, same id as auth.users)
- email: text (unique, not null)
- password_hash: text - "oauth_google" placeholder for OAuth users
- full_name: text (nullable)
- avatar_url: text (nullable)
- email_verified: bool
- is_active: bool
- last_login_at: timestamptz
- created_at: timestamptz (default: now())
- updated_at: timestamptz (nullable)

auth.users.user_metadata carries full_name, avatar_url, firebase_uid and
provider. Rows are never hard-deleted; is_active = false locks the account.
"""
