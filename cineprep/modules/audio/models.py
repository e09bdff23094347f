# Supabase tables: audio_generations

"""
Expected Supabase table structure:

audio_generations:
- id: uuid (primary key)
- user_id: uuid (references users.id)
- movie_title: text
- narrative_chars: int - length of the text sent to TTS
- source: text - url | base64
- audio_url: text (nullable, only for hosted audio)
- status: text - ready | failed
- created_at: timestamptz (default: now())

One row per successful /api/audio/generate call.
"""
