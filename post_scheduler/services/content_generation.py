"""
OpenAI post copy generation for dealer Facebook groups.
All GPT calls live in this module. Output is free text, no JSON.
"""
import asyncio
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from openai import OpenAI

from post_scheduler.config import Settings
from post_scheduler.logging_config import get_logger

logger = get_logger(__name__)

POST_TYPES = (
    "brand_awareness",
    "vehicle_spotlight",
    "special_offer",
    "community",
    "testimonial_style",
)

POST_TYPE_GUIDANCE: Dict[str, str] = {
    "brand_awareness": "Introduce the dealership and what makes buying from it different.",
    "vehicle_spotlight": "Showcase one specific vehicle and elaborate on the benefits of its features.",
    "special_offer": "Promote a time-limited offer and make the value of acting now obvious.",
    "community": "Connect the dealership to the local community and invite conversation.",
    "testimonial_style": "Retell a customer's experience in a warm, authentic voice.",
}


@dataclass(frozen=True)
class GenerationRequest:
    """Structured prompt parameters of one post."""

    group_name: str
    post_type: str = "brand_awareness"
    territory_name: Optional[str] = None
    group_description: Optional[str] = None
    special_offer: Optional[str] = None
    vehicle_data: Optional[Dict[str, Any]] = None
    testimonial_data: Optional[Dict[str, Any]] = None
    special_context: Optional[str] = None


def _format_details(data: Optional[Dict[str, Any]]) -> str:
    if not data:
        return ""
    return ", ".join(f"{k.replace('_', ' ')}: {v}" for k, v in data.items() if v not in (None, ""))


def build_prompt(request: GenerationRequest) -> List[Dict[str, str]]:
    """Chat messages for one post."""
    system = (
        "You are a social media marketing and sales expert for a car dealership. "
        "Your goal is to create an authentic, highly engaging and descriptive Facebook post that drives immediate action."
    )
    context = f'This post is for the Facebook group "{request.group_name}".'
    if request.group_description:
        context += f" Group description: {request.group_description}."
    if request.territory_name:
        context += f" The group serves the {request.territory_name} area."

    details = [f"Post type: {request.post_type.replace('_', ' ')}"]
    guidance = POST_TYPE_GUIDANCE.get(request.post_type)
    if guidance:
        details.append(f"Focus: {guidance}")
    if request.special_offer:
        details.append(f"Offer: {request.special_offer}")
    vehicle = _format_details(request.vehicle_data)
    if vehicle:
        details.append(f"Vehicle: {vehicle}")
    testimonial = _format_details(request.testimonial_data)
    if testimonial:
        details.append(f"Customer story: {testimonial}")
    if request.special_context:
        details.append(f"Additional context: {request.special_context}")

    user = (
        f"{context}\n\n--- DETAILS ---\n" + "\n".join(details) + "\n\n--- INSTRUCTIONS ---\n"
        "1. Write a compelling, multi-paragraph post (target length: 300-500 words).\n"
        "2. Start with an attention-grabbing hook.\n"
        "3. Structure the post with clear paragraph breaks.\n"
        "4. Integrate emojis naturally.\n"
        "5. Place the call to action at the end.\n"
        "6. Absolutely no hashtags.\n"
        "7. Return only the post text."
    )
    return [{"role": "system", "content": system}, {"role": "user", "content": user}]


class ContentGenerator:
    """OpenAI chat completion client for post copy."""

    def __init__(self, settings: Settings) -> None:
        self.api_key = settings.openai_api_key
        self.model = settings.openai_model
        self.timeout_seconds = settings.openai_timeout_seconds
        self.max_retries = settings.openai_max_retries
        self.temperature = settings.openai_temperature
        self.max_tokens = settings.openai_max_tokens
        self._client: Optional[OpenAI] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(
                api_key=self.api_key or "",
                timeout=float(self.timeout_seconds),
                max_retries=self.max_retries,
            )
        return self._client

    async def generate_post(self, request: GenerationRequest) -> str:
        """
        Generate post copy. Raises ValueError("openai_not_configured") without a key,
        ValueError("empty_generation") on blank output; OpenAI errors propagate.
        """
        if not self.is_configured:
            raise ValueError("openai_not_configured")
        client = self._get_client()
        start = time.perf_counter()
        try:
            resp = await asyncio.to_thread(
                client.chat.completions.create,
                model=self.model,
                messages=build_prompt(request),
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except Exception as e:
            latency_ms = (time.perf_counter() - start) * 1000
            logger.warning("llm.post_failed", model=self.model, latency_ms=round(latency_ms), error=str(e))
            raise
        latency_ms = (time.perf_counter() - start) * 1000
        content = (resp.choices[0].message.content or "").strip() if resp.choices else ""
        if not content:
            logger.warning("llm.post_empty", model=self.model, latency_ms=round(latency_ms))
            raise ValueError("empty_generation")
        logger.info(
            "llm.post_success",
            model=self.model,
            latency_ms=round(latency_ms),
            post_type=request.post_type,
            length=len(content),
        )
        return content
