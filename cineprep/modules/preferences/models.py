# Supabase table: user_preferences
# One row per user (user_id is the primary key), created with defaults during
# the auth bridge provisioning. Column list lives in membership/models.py next
# to the other per-user rows created at signup.
