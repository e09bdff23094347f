# Supabase tables: plans, memberships, usage_tracking, user_preferences
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

plans:
- id: uuid (primary key)
- name: text
- slug: text (unique) - free | pro | premium
- description: text (nullable)
- price_monthly: numeric
- price_yearly: numeric
- max_analyses_per_month: int (-1 = unlimited)
- max_audio_generations_per_month: int (-1 = unlimited)
- can_access_premium_voices: bool
- can_force_regenerate: bool
- priority_queue: bool
- features: jsonb
- is_active: bool

memberships:
- id: uuid (primary key)
- user_id: uuid (references users.id)
- plan_id: uuid (references plans.id)
- status: text - active | cancelled | expired | suspended
- billing_cycle: text - monthly | yearly
- current_period_start: timestamptz
- current_period_end: timestamptz
- cancel_at_period_end: bool
- created_at: timestamptz (default: now())
- unique (user_id, plan_id, current_period_start)

usage_tracking:
- id: uuid (primary key)
- user_id: uuid (references users.id)
- period_start: date (first day of the calendar month)
- period_end: date (last day of the calendar month)
- analyses_generated: int
- audio_generated: int
- tokens_consumed: int
- last_reset_at: timestamptz
- updated_at: timestamptz
- unique (user_id, period_start)

user_preferences:
- user_id: uuid (primary key, references users.id)
- default_language, default_detail_level, default_tone: text
- preferred_voice_id: text (nullable)
- auto_generate_audio, email_notifications, new_features_newsletter: bool
- theme: text
- updated_at: timestamptz (nullable)

The unique keys above back the INSERT ... ON CONFLICT DO NOTHING upserts
used during provisioning.
"""
