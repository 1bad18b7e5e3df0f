"""Marketing copy generation with Google Gemini.

The generator sits behind a per-address rate limit and a content cache.
Whenever the model fails, or answers with text that does not pass the
profanity and language checks, canned French copy is returned instead.
"""

import hashlib
import json
import re
import time
from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic import ValidationError
from structlog import get_logger

from app.config import settings
from app.constants import PROPERTY_TYPE_LABELS, TargetBuyer
from app.schemas.content import AIContent, GeneratedCopy, RateLimitInfo, SocialMedia
from app.schemas.dossier import PropertySubmission
from app.services.content_store import ContentCache, RateLimiter, RateLimitResult
from app.services.formatting import format_area, format_price, location_from_address
from app.services.retry import retry_async_with_backoff

logger = get_logger()

PERSONA_PROMPTS = {
    TargetBuyer.JEUNE_FAMILLE: {
        "traits": "une jeune famille avec enfants cherchant un cadre de vie idéal",
        "focus": "proximité des écoles, espaces verts, sécurité, quartier familial",
        "tone": "chaleureux et rassurant",
    },
    TargetBuyer.PROFESSIONNEL: {
        "traits": "un professionnel actif recherchant praticité et style de vie urbain",
        "focus": "proximité des transports, vie de quartier animée, commerces, espace de travail",
        "tone": "moderne et dynamique",
    },
    TargetBuyer.RETRAITE: {
        "traits": "des retraités cherchant confort et tranquillité",
        "focus": "calme, proximité des commerces et services médicaux, accessibilité, faible entretien",
        "tone": "serein et élégant",
    },
    TargetBuyer.INVESTISSEUR: {
        "traits": "un investisseur immobilier recherchant rentabilité et valorisation",
        "focus": "potentiel locatif, rendement, évolution du quartier, travaux possibles",
        "tone": "professionnel et factuel",
    },
    TargetBuyer.PREMIER_ACHETEUR: {
        "traits": "des primo-accédants qui achètent leur premier logement",
        "focus": "budget maîtrisé, état du bien, frais à prévoir, potentiel d'évolution",
        "tone": "pédagogique et encourageant",
    },
    TargetBuyer.FAMILLE_MULTIGENERATIONNELLE: {
        "traits": "une famille multigénérationnelle vivant sous le même toit",
        "focus": "nombre de pièces, espaces de vie séparés, accessibilité, espaces extérieurs partagés",
        "tone": "chaleureux et inclusif",
    },
}

INAPPROPRIATE_WORDS = [
    "merde", "putain", "connard", "salope", "enculé",
    "fuck", "shit", "damn", "bitch",
]

FRENCH_INDICATORS = ["le", "la", "les", "de", "à", "et", "pour", "avec", "cette", "une"]

PROMPT_TEMPLATE = """Tu es un agent immobilier français expert avec 15 ans d'expérience.
Tu dois créer du contenu marketing immobilier en français uniquement, ciblé pour {traits}.

Voici les informations sur le bien:
{details}

Génère un JSON avec la structure EXACTE suivante (pas d'autres champs):
{{
  "narrative": "Un paragraphe de 150-200 mots décrivant le bien de manière attractive, en mettant l'accent sur {focus}. Utilise un ton {tone}.",
  "facebook": "Post Facebook de 3-4 lignes avec emojis, optimisé pour l'engagement. Inclut un appel à l'action.",
  "instagram": "Légende Instagram de 2-3 lignes avec hashtags pertinents (#immobilier #{hashtag} etc.)",
  "linkedin": "Post LinkedIn professionnel de 3-4 lignes, ton formel mais engageant, sans emojis."
}}

IMPORTANT:
- Réponds uniquement avec le JSON, sans texte avant ou après
- Tous les textes doivent être en français
- Sois factuel et ne mentionne que les éléments fournis
- Adapte le contenu au persona cible ({persona})"""


class InvalidAIResponse(ValueError):
    pass


class RateLimitExceeded(Exception):
    def __init__(self, result: RateLimitResult):
        super().__init__("Rate limit exceeded")
        self.retry_after = result.retry_after
        self.reset_time = result.reset_time


def build_prompt(submission: PropertySubmission) -> str:
    persona = PERSONA_PROMPTS[submission.target_buyer]
    details = [
        f"- Type: {PROPERTY_TYPE_LABELS[submission.property_type]}",
        f"- Adresse: {submission.address}",
        f"- Prix: {format_price(submission.price)}",
    ]
    if submission.living_area is not None:
        details.append(f"- Surface habitable: {format_area(submission.living_area)} m²")
    if submission.room_count is not None:
        details.append(f"- Pièces: {submission.room_count}")
    if submission.construction_year:
        details.append(f"- Année de construction: {submission.construction_year}")
    if submission.key_points:
        details.append(f"- Points forts: {submission.key_points}")
    if submission.property_description:
        details.append(f"- Description: {submission.property_description}")
    return PROMPT_TEMPLATE.format(
        traits=persona["traits"],
        focus=persona["focus"],
        tone=persona["tone"],
        details="\n".join(details),
        hashtag=_hashtag(location_from_address(submission.address)),
        persona=submission.target_buyer.value,
    )


def parse_ai_response(text: str) -> GeneratedCopy:
    match = re.search(r"\{[\s\S]*\}", text or "")
    if not match:
        raise InvalidAIResponse("No JSON found in response")
    try:
        return GeneratedCopy.model_validate(json.loads(match.group(0)))
    except (json.JSONDecodeError, ValidationError) as e:
        raise InvalidAIResponse(f"Invalid AI response format: {e}") from e


def cache_key(submission: PropertySubmission) -> str:
    key_data = {
        "type": submission.property_type.value,
        "address": " ".join(submission.address.lower().split()),
        "price": submission.price,
        "area": submission.living_area,
        "rooms": submission.room_count,
        "year": submission.construction_year,
        "target": submission.target_buyer.value,
        "keyPoints": (submission.key_points or "").strip(),
    }
    return hashlib.sha256(json.dumps(key_data, sort_keys=True).encode("utf-8")).hexdigest()


def _hashtag(text: str) -> str:
    return re.sub(r"\W+", "", text) or "immobilier"


def generate_fallback_content(submission: PropertySubmission) -> GeneratedCopy:
    location = location_from_address(submission.address)
    label = PROPERTY_TYPE_LABELS[submission.property_type].lower()
    price = format_price(submission.price)
    surface = f" de {format_area(submission.living_area)} m²" if submission.living_area is not None else ""
    rooms = f" avec {submission.room_count} pièces" if submission.room_count is not None else ""
    year = f" construit en {submission.construction_year}" if submission.construction_year else ""
    return GeneratedCopy(
        narrative=(
            f"Découvrez ce bien d'exception : {label}{surface}{rooms}{year}, situé à {location}. "
            "Ce bien offre tout le confort nécessaire pour votre projet immobilier. "
            f"Une opportunité à saisir rapidement au prix de {price}."
        ),
        facebook=(
            f"🏡 Nouvelle opportunité à {location} !\n"
            f"{label.capitalize()}{surface}{rooms}.\n"
            f"Prix : {price}\n"
            "📞 Contactez-nous pour une visite !"
        ),
        instagram=(
            f"✨ {label.capitalize()} d'exception à {location}\n"
            f"{price}\n"
            f"#immobilier #{_hashtag(location)} #avendre #investissement"
        ),
        linkedin=(
            f"Opportunité immobilière à {location} : {label}{surface}{rooms}. "
            f"Prix de vente : {price}. "
            "Pour plus d'informations, n'hésitez pas à me contacter."
        ),
    )


def passes_content_checks(copy: GeneratedCopy) -> bool:
    """Reject profanity and text that does not read as French."""
    content = " ".join([copy.narrative, copy.facebook, copy.instagram, copy.linkedin]).lower()
    if any(word in content for word in INAPPROPRIATE_WORDS):
        logger.warning("Inappropriate content detected in AI response")
        return False
    has_french = any(
        f" {word} " in content or content.startswith(f"{word} ") or f"'{word}" in content
        for word in FRENCH_INDICATORS
    )
    if not has_french:
        logger.warning("AI response does not look French")
        return False
    return True


class ContentGenerator:
    def __init__(
        self,
        cache: Optional[ContentCache] = None,
        rate_limiter: Optional[RateLimiter] = None,
        max_retries: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.cache = cache if cache is not None else ContentCache(
            settings.AI_CACHE_TTL_SECONDS, settings.AI_CACHE_MAX_SIZE, clock
        )
        self.rate_limiter = rate_limiter if rate_limiter is not None else RateLimiter(
            settings.AI_RATE_LIMIT_MAX_REQUESTS, settings.AI_RATE_LIMIT_WINDOW_SECONDS, clock
        )
        self.max_retries = settings.AI_MAX_RETRIES if max_retries is None else max_retries
        self.retry_base_delay = settings.AI_RETRY_BASE_DELAY if retry_base_delay is None else retry_base_delay
        self._clock = clock
        self._client = None
        self._client_key = None

    @property
    def enabled(self) -> bool:
        return bool(settings.GEMINI_API_KEY)

    def _get_client(self):
        api_key = settings.GEMINI_API_KEY
        if not api_key:
            raise RuntimeError("GEMINI_API_KEY not configured")
        if self._client is None or self._client_key != api_key:
            from google import genai

            self._client = genai.Client(api_key=api_key)
            self._client_key = api_key
        return self._client

    async def _call_model(self, prompt: str) -> str:
        from google.genai import types

        client = self._get_client()
        response = await client.aio.models.generate_content(
            model=settings.GEMINI_MODEL,
            contents=prompt,
            config=types.GenerateContentConfig(
                temperature=0.7,
                max_output_tokens=1000,
                top_p=0.8,
                top_k=40,
                response_mime_type="application/json",
            ),
        )
        if not response.text:
            raise InvalidAIResponse("Empty response from AI")
        return response.text

    async def _generate_with_retry(self, submission: PropertySubmission) -> GeneratedCopy:
        prompt = build_prompt(submission)
        text = await retry_async_with_backoff(
            lambda: self._call_model(prompt),
            retries=self.max_retries,
            base_delay=self.retry_base_delay,
        )
        return parse_ai_response(text)

    def _rate_limit_info(self, result: RateLimitResult) -> RateLimitInfo:
        reset = datetime.fromtimestamp(result.reset_time, tz=timezone.utc).isoformat()
        return RateLimitInfo(remaining=result.remaining, reset=reset)

    async def generate(self, submission: PropertySubmission, ip_address: str = "unknown") -> AIContent:
        """Return marketing copy for ``submission``.

        Raises RateLimitExceeded when ``ip_address`` spent its quota. Model
        failures never propagate: the fallback copy is returned instead.
        """
        start = self._clock()
        limit = self.rate_limiter.check(ip_address)
        if not limit.allowed:
            logger.warning("AI rate limit exceeded", ip=ip_address, retry_after=limit.retry_after)
            raise RateLimitExceeded(limit)

        key = cache_key(submission)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Cache hit for property content", persona=submission.target_buyer.value)
            return cached.model_copy(
                update={"cached": True, "generation_time": 0, "rate_limit": self._rate_limit_info(limit)}
            )

        fallback = False
        try:
            copy = await self._generate_with_retry(submission)
        except Exception as e:
            logger.error("AI generation failed, using fallback", error=str(e))
            copy = generate_fallback_content(submission)
            fallback = True

        if not fallback and not passes_content_checks(copy):
            copy = generate_fallback_content(submission)
            fallback = True

        content = AIContent(
            narrative=copy.narrative,
            social_media=SocialMedia(facebook=copy.facebook, instagram=copy.instagram, linkedin=copy.linkedin),
            fallback=fallback,
        )
        if not fallback:
            self.cache.set(key, content)

        generation_time = int((self._clock() - start) * 1000)
        logger.info(
            "AI content generated",
            generation_time=generation_time,
            fallback=fallback,
            persona=submission.target_buyer.value,
        )
        return content.model_copy(
            update={"generation_time": generation_time, "rate_limit": self._rate_limit_info(limit)}
        )

    def sweep(self) -> None:
        removed_entries = self.cache.cleanup()
        removed_windows = self.rate_limiter.cleanup()
        logger.info("Swept AI content store", cache_removed=removed_entries, rate_limit_removed=removed_windows)

    def clear(self) -> None:
        self.cache.clear()
        self.rate_limiter.clear()


content_generator = ContentGenerator()
