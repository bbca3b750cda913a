# llm service using the gemini generateContent rest api
import requests
import logging
from typing import Any, Dict, List, Optional

from . import config
from .errors import AuthenticationRequired, QuotaExceeded, RemoteServiceError

logger = logging.getLogger(__name__)


# thin client for the gemini rest api, bound to one api key
class GeminiClient:
    """Stateless Gemini client; build one per call with create_llm_client()"""

    # initialize client with an explicit credential
    def __init__(self, api_key: str, base_url: Optional[str] = None, timeout: Optional[float] = None):
        if not api_key or not api_key.strip():
            raise AuthenticationRequired()
        self.base_url = (base_url or config.GEMINI_BASE_URL).rstrip("/")
        self.timeout = timeout or config.REQUEST_TIMEOUT
        self.session = requests.Session()
        self.session.headers.update({
            "x-goog-api-key": api_key.strip(),
            "Content-Type": "application/json",
        })

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self):
        self.session.close()

    # send a generateContent request and return the decoded response body
    def generate_content(
        self,
        model: str,
        parts: List[Dict[str, Any]],
        generation_config: Optional[Dict[str, Any]] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """POST models/{model}:generateContent"""
        payload: Dict[str, Any] = {"contents": [{"role": "user", "parts": parts}]}
        if generation_config:
            payload["generationConfig"] = generation_config
        if tools:
            payload["tools"] = tools

        try:
            response = self.session.post(
                f"{self.base_url}/models/{model}:generateContent",
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            raise RemoteServiceError("Request to the AI service timed out. The model might be overloaded.")
        except requests.exceptions.RequestException as e:
            raise RemoteServiceError(f"Cannot reach the AI service: {str(e)}")

        if response.status_code != 200:
            raise self._error_for(response)

        try:
            return response.json()
        except ValueError:
            raise RemoteServiceError("AI service returned a non-JSON response", status_code=response.status_code)

    # generate text (optionally schema-constrained json) from a single prompt
    def generate_text(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: float = 0.2,
        response_schema: Optional[Dict[str, Any]] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> str:
        """Generate text and return the concatenated text parts of the first candidate"""
        generation_config: Dict[str, Any] = {"temperature": temperature}
        if response_schema is not None:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = response_schema

        result = self.generate_content(
            model or config.TEXT_MODEL,
            [{"text": prompt}],
            generation_config=generation_config,
            tools=tools,
        )
        return response_text(result)

    # map a failed http response onto the error taxonomy
    def _error_for(self, response: requests.Response) -> Exception:
        body = response.text or ""
        try:
            detail = response.json().get("error", {}).get("message") or body
        except ValueError:
            detail = body
        detail = detail.strip()[:500]
        status = response.status_code
        logger.error(f"Gemini API error: {status} - {detail}")

        if status == 429 or "RESOURCE_EXHAUSTED" in body:
            return QuotaExceeded(f"AI service quota exhausted (429 RESOURCE_EXHAUSTED): {detail}", status_code=status)
        if status in (401, 403) or "API_KEY_INVALID" in body:
            return AuthenticationRequired(
                f"Critical: the API key was rejected ({status}). Please connect a valid key."
            )
        return RemoteServiceError(f"AI service error {status}: {detail}", status_code=status)


# pull the text out of a generateContent response
def response_text(result: Dict[str, Any]) -> str:
    candidates = result.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts if not part.get("thought")).strip()


# pull the first inline image out of a generateContent response
def response_inline_data(result: Dict[str, Any]) -> Optional[Dict[str, str]]:
    for candidate in result.get("candidates") or []:
        for part in (candidate.get("content") or {}).get("parts") or []:
            inline = part.get("inlineData") or part.get("inline_data")
            if inline and inline.get("data"):
                return {
                    "mime_type": inline.get("mimeType") or inline.get("mime_type") or "image/png",
                    "data": inline["data"],
                }
    return None


# build a fresh client for one call so the latest credential is always used
def create_llm_client(api_key: str) -> GeminiClient:
    """Create a Gemini client bound to the given api key"""
    return GeminiClient(api_key)
