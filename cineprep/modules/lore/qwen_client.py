"""
Qwen (DashScope) text generation client for lore analyses.

Builds the prompt from movie metadata, issues a single POST to the hosted
model, extracts the JSON document from the free-text answer and repairs
missing summary fields with defaults.
"""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from cineprep.config import settings
from cineprep.modules.lore.schemas import Movie

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "Eres un experto cinéfilo que crea resúmenes detallados y narrativos de películas. "
    "Siempre respondes ÚNICAMENTE con JSON válido, sin texto adicional."
)

DEFAULT_NARRATIVE = (
    "Esta película es parte de la saga y contiene eventos importantes para la continuidad de la historia."
)
DEFAULT_TONE = "épico y narrativo"

# USD per 1K tokens
MODEL_PRICING: Dict[str, Dict[str, float]] = {
    "qwen-turbo": {"input": 0.0003, "output": 0.0006},
    "qwen-plus": {"input": 0.0004, "output": 0.0012},
    "qwen-max": {"input": 0.004, "output": 0.012},
}

_FENCE_RE = re.compile(r"```json\n?|```\n?")
_JSON_BLOCK_RE = re.compile(r"\{[\s\S]*\}")


class QwenAPIError(Exception):
    """Raised when the Qwen API call fails or returns no content."""


class QwenNotConfiguredError(QwenAPIError):
    """Raised when QWEN_API_KEY is missing."""


class LoreParseError(ValueError):
    """Raised when the model output has no usable lore document."""


def _release_year(release_date: Optional[str]) -> str:
    if release_date and len(release_date) >= 4 and release_date[:4].isdigit():
        return release_date[:4]
    return "?"


def build_prompt(current_movie: Movie, previous_movies: List[Movie], generated_at: Optional[str] = None) -> str:
    """Prompt asking for a spoiler-free JSON summary of `previous_movies`."""
    generated_at = generated_at or datetime.now(timezone.utc).isoformat()
    movies_info = "\n".join(
        f"""
{index + 1}. "{movie.title}" ({_release_year(movie.release_date)})
   - ID: {movie.id}
   - Poster: {movie.poster_path or 'N/A'}
   - Sinopsis: {movie.overview or 'No disponible'}
"""
        for index, movie in enumerate(previous_movies)
    )

    movie_title = current_movie.title
    movie_year = _release_year(current_movie.release_date)
    first = previous_movies[0] if previous_movies else None
    example_id = first.id if first else 0
    example_title = first.title if first else "Título"
    example_poster = (first.poster_path if first else None) or "/default.jpg"

    return f"""Necesito que generes un resumen COMPLETO y DETALLADO de las películas previas de una saga.

📋 CONTEXTO:
El usuario va a ver "{movie_title}" ({movie_year}) y necesita entender qué pasó antes.

🎬 PELÍCULAS A RESUMIR:
{movies_info}

⚠️ REGLAS CRÍTICAS:
1. NUNCA menciones spoilers de "{movie_title}"
2. Resume SOLO las películas previas listadas
3. Sé narrativo y enganchante, NO hagas bullet points aburridos
4. Usa español latinoamericano neutro
5. Cada película debe tener 5 key_facts MÍNIMO (3 critical + 2 important)
6. Incluye 4-6 emotional_beats con emojis relevantes

📊 RESPONDE SOLO CON ESTE JSON (sin texto adicional, sin markdown, sin ```):

{{
  "status": "ready",
  "generated_at": "{generated_at}",
  "required_movies": [
    {{
      "tmdb_id": {example_id},
      "title": "{example_title}",
      "poster_path": "{example_poster}",
      "priority": "essential",
      "watch_time": "120 min",
      "summary": {{
        "narrative": "IMPORTANTE: Esto DEBE ser un párrafo narrativo BREVE de 4-6 oraciones (máximo 400 caracteres) que cuenta la historia completa de forma fluida. NO uses bullet points, NO hagas listas, escribe un párrafo continuo.",
        "tone": "épico y emotivo",
        "key_facts": [
          {{"id": 1, "text": "Hecho crítico 1 que es absolutamente necesario recordar", "importance": "critical"}},
          {{"id": 2, "text": "Hecho crítico 2", "importance": "critical"}},
          {{"id": 3, "text": "Hecho crítico 3", "importance": "critical"}},
          {{"id": 4, "text": "Hecho importante 4", "importance": "important"}},
          {{"id": 5, "text": "Hecho importante 5", "importance": "important"}}
        ],
        "emotional_beats": [
          "💔 Momento emocional clave 1",
          "⚔️ Momento emocional clave 2",
          "✨ Momento emocional clave 3",
          "🎬 Momento emocional clave 4"
        ]
      }},
      "audio": {{
        "status": "pending",
        "duration": "~2:30",
        "voice_name": "Narrador IA"
      }}
    }}
  ],
  "spoiler_free_guarantee": {{
    "enabled": true,
    "message": "Este resumen NO contiene spoilers de {movie_title}. Solo cubre las películas anteriores."
  }},
  "preparation_time": "2h 30min"
}}

IMPORTANTE:
- **El campo "narrative" ES OBLIGATORIO** y debe ser breve (máximo 400 caracteres, ~5 oraciones).
- Genera UN objeto para CADA película en previousMovies
- Usa los IDs, títulos y posters EXACTOS de las películas proporcionadas
- Incluye EXACTAMENTE 5 key_facts (mínimo 3 critical)
- Incluye 4-6 emotional_beats con emojis relevantes
- Calcula preparation_time sumando todos los watch_time

Responde SOLO con el JSON, sin ```json ni explicaciones."""


def parse_qwen_response(ai_response: str) -> Dict[str, Any]:
    """Extract the lore JSON from the model's answer.

    Missing narrative, key_facts, emotional_beats or tone are replaced by
    defaults. Raises LoreParseError when there is no JSON object, or when
    required_movies is missing, not a list, empty, or a movie has no summary.
    """
    json_str = _FENCE_RE.sub("", (ai_response or "").strip())
    match = _JSON_BLOCK_RE.search(json_str)
    if not match:
        logger.error("No JSON found in AI response")
        raise LoreParseError("Failed to parse AI response: No JSON found in AI response")

    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in AI response: {e}")
        raise LoreParseError(f"Failed to parse AI response: {e}") from e

    movies = parsed.get("required_movies")
    if not isinstance(movies, list):
        raise LoreParseError("Failed to parse AI response: Invalid: missing required_movies array")
    if not movies:
        raise LoreParseError("Failed to parse AI response: Invalid: required_movies is empty")

    for movie in movies:
        if not isinstance(movie, dict) or not isinstance(movie.get("summary"), dict):
            title = movie.get("title") if isinstance(movie, dict) else movie
            raise LoreParseError(f'Failed to parse AI response: Invalid: movie "{title}" missing summary object')

        summary = movie["summary"]
        title = movie.get("title")
        if not summary.get("narrative") or not isinstance(summary["narrative"], str):
            logger.warning(f'Movie "{title}" missing narrative, using default')
            summary["narrative"] = DEFAULT_NARRATIVE
        if not isinstance(summary.get("key_facts"), list):
            logger.warning(f'Movie "{title}" missing key_facts')
            summary["key_facts"] = []
        if not isinstance(summary.get("emotional_beats"), list):
            logger.warning(f'Movie "{title}" missing emotional_beats')
            summary["emotional_beats"] = []
        if not summary.get("tone"):
            summary["tone"] = DEFAULT_TONE

    return parsed


def calculate_cost(tokens: int, model: str = "qwen-plus") -> str:
    """Approximate cost, assuming a 50/50 input/output split. Unknown models use qwen-plus pricing."""
    price = MODEL_PRICING.get(model, MODEL_PRICING["qwen-plus"])
    avg_price = (price["input"] + price["output"]) / 2
    cost = (tokens / 1000) * avg_price
    return f"{cost:.4f} USD"


class QwenClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None
    ):
        self.api_key = api_key if api_key is not None else settings.qwen_api_key
        self.api_url = api_url or settings.qwen_api_url
        self.model = model or settings.qwen_model
        self.timeout = timeout or settings.qwen_timeout_seconds

    def generate_lore(self, current_movie: Movie, previous_movies: List[Movie]) -> Dict[str, Any]:
        """One request, no retries. Adds token_usage (with estimated_cost) when the API reports it."""
        if not self.api_key:
            raise QwenNotConfiguredError("QWEN_API_KEY not configured")

        prompt = build_prompt(current_movie, previous_movies)
        logger.info(f"Calling Qwen ({self.model}) for {current_movie.title}")

        try:
            response = requests.post(
                self.api_url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                    "X-DashScope-SSE": "disable",
                },
                json={
                    "model": self.model,
                    "input": {
                        "messages": [
                            {"role": "system", "content": SYSTEM_PROMPT},
                            {"role": "user", "content": prompt},
                        ]
                    },
                    "parameters": {
                        "temperature": 0.8,
                        "max_tokens": 4000,
                        "result_format": "message",
                    },
                },
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Qwen request failed: {e}")
            raise QwenAPIError(f"Qwen API Error: {e}") from e

        if not response.ok:
            raise QwenAPIError(f"Qwen API Error: {response.status_code} - {response.text}")

        data = response.json()
        try:
            content = data["output"]["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not content:
            logger.error(f"Qwen response without content: {json.dumps(data, ensure_ascii=False)[:1000]}")
            raise QwenAPIError("Invalid response from Qwen API")

        logger.debug(f"Raw AI response (first 500 chars): {content[:500]}")
        analysis = parse_qwen_response(content)

        usage = data.get("usage")
        if usage:
            total = usage.get("total_tokens") or 0
            analysis["token_usage"] = {
                "input_tokens": usage.get("input_tokens") or 0,
                "output_tokens": usage.get("output_tokens") or 0,
                "total_tokens": total,
                "estimated_cost": calculate_cost(total, self.model),
            }
            logger.info(f"Token usage: {total} tokens, estimated cost {analysis['token_usage']['estimated_cost']}")

        logger.info(f"Parsed lore with {len(analysis['required_movies'])} movie(s)")
        return analysis
