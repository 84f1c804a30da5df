import json
import logging
from typing import Optional, Protocol

import requests
from pydantic import ValidationError

from config import GEMINI_API_KEY, GEMINI_BASE_URL, GEMINI_MODEL, HTTP_TIMEOUT_SECONDS
from errors import AdvisoryUnavailable
from models import AdvisoryRequest, AdvisoryResponse

logger = logging.getLogger(__name__)


class AdvisoryProvider(Protocol):
    def advise(self, request: AdvisoryRequest) -> AdvisoryResponse:
        ...


RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "bestVehicleId": {
            "type": "STRING",
            "description": "The ID of the recommended ambulance.",
        },
        "reasoning": {
            "type": "STRING",
            "description": "A brief justification for the choice.",
        },
    },
    "required": ["bestVehicleId", "reasoning"],
}


def build_prompt(request: AdvisoryRequest) -> str:
    candidates = json.dumps(
        [
            {
                "id": c.id,
                "location": {"lat": c.location.lat, "lng": c.location.lng},
                "vehicleType": c.vehicle_type.value,
            }
            for c in request.candidates
        ],
        indent=2,
    )
    return f"""
You are an Automated Ambulance Dispatch System. Select the single best ambulance
to respond to the emergency incident below.

Incident:
- Location (Lat/Lng): {request.incident_location.lat}, {request.incident_location.lng}
- Priority: {request.incident_priority.value}
- Description: "{request.incident_description}"

Available ambulances:
{candidates}

Decision criteria, in order of importance:
1. Proximity: choose the closest ambulance.
2. Vehicle type: for 'Critical' or 'High' priority an 'Advanced Life Support' unit
   is strongly preferred if one is nearby. For 'Medium' or 'Low' a
   'Basic Life Support' unit is acceptable.
3. Assume uniform urban traffic.

Return the chosen ambulance id and a brief reason.
"""


class GeminiAdvisor:
    """Advisory dispatch decisions from the Gemini generateContent REST API."""

    def __init__(
        self,
        api_key: Optional[str] = GEMINI_API_KEY,
        model: str = GEMINI_MODEL,
        base_url: str = GEMINI_BASE_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def advise(self, request: AdvisoryRequest) -> AdvisoryResponse:
        if not self.api_key:
            raise AdvisoryUnavailable("GEMINI_API_KEY has not been provided")

        url = f"{self.base_url}/models/{self.model}:generateContent"
        body = {
            "contents": [{"parts": [{"text": build_prompt(request)}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
            },
        }
        try:
            response = requests.post(
                url, params={"key": self.api_key}, json=body, timeout=self.timeout
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise AdvisoryUnavailable(f"Gemini request failed: {exc}") from exc

        return parse_decision(payload)


def parse_decision(payload: dict) -> AdvisoryResponse:
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"].strip()
    except (KeyError, IndexError, TypeError, AttributeError) as exc:
        raise AdvisoryUnavailable("No response text from Gemini API") from exc
    if not text:
        raise AdvisoryUnavailable("No response text from Gemini API")

    try:
        decision = json.loads(text)
        return AdvisoryResponse(
            best_vehicle_id=decision["bestVehicleId"],
            reasoning=decision["reasoning"],
        )
    except (ValueError, KeyError, TypeError, ValidationError) as exc:
        raise AdvisoryUnavailable(f"Malformed advisory decision: {exc}") from exc
