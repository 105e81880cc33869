"""Bot verification services.

Verifies reCAPTCHA tokens submitted with the contact form. Three variants
share one contract, ``verify(token) -> VerificationResult``:

- ``v3``: score based, fails below the configured threshold
- ``v2-checkbox`` / ``v2-invisible``: the upstream success flag is final
- ``enterprise``: risk assessment through the reCAPTCHA Enterprise API

The variant is chosen once at startup from ``RECAPTCHA_TYPE``.
"""

import logging
from typing import Any, Dict, List, Tuple, Type

import httpx
from pydantic import ValidationError as PydanticValidationError

from contact_form.core.config import Settings, settings
from contact_form.core.errors import BotVerificationError, ConfigurationError
from contact_form.models.contact import VerificationResult

logger = logging.getLogger(__name__)

SITEVERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"
ENTERPRISE_URL = "https://recaptchaenterprise.googleapis.com/v1/projects/{project_id}/assessments"
EXPECTED_ACTION = "submit"


class BaseBotVerifier:
    """
    Base class for bot verification strategies.

    Concrete verifiers declare the ``RECAPTCHA_TYPE`` values they serve in
    ``types`` and are registered automatically so that
    ``create_bot_verifier`` can select one by configuration.
    """

    # RECAPTCHA_TYPE value -> verifier class
    registry: Dict[str, Type["BaseBotVerifier"]] = {}
    types: Tuple[str, ...] = ()

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        for type_name in cls.types:
            BaseBotVerifier.registry[type_name] = cls

    def __init__(self, config: Settings, type_name: str):
        self.config = config
        self.type_name = type_name

    async def verify(self, token: str) -> VerificationResult:
        """
        Verifies a bot verification token.

        Args:
            token (str): Token posted by the browser widget.

        Returns:
            VerificationResult: Score, policy decision and upstream errors.

        Raises:
            BotVerificationError: On network errors or malformed upstream responses.
            NotImplementedError: If called on the base class.
        """
        cls_name = type(self).__name__
        raise NotImplementedError(f"{cls_name}.verify not implemented")

    async def _post(self, url: str, **kwargs) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{self.type_name} verification error: {str(e)}")
            raise BotVerificationError(f"{self.type_name} verification failed: {str(e)}") from e

        if response.status_code != 200:
            logger.error(f"{self.type_name} API returned status {response.status_code}")
            raise BotVerificationError(
                f"{self.type_name} API error: {response.status_code}"
            )

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"{self.type_name} returned a non-JSON body")
            raise BotVerificationError(f"{self.type_name} returned a malformed response") from e

        if not isinstance(data, dict):
            raise BotVerificationError(f"{self.type_name} returned a malformed response")
        return data

    def _result(self, **fields) -> VerificationResult:
        try:
            return VerificationResult(**fields)
        except (PydanticValidationError, TypeError, ValueError) as e:
            raise BotVerificationError(f"{self.type_name} returned a malformed response") from e

    async def _siteverify(self, token: str) -> Dict[str, Any]:
        return await self._post(
            SITEVERIFY_URL,
            data={"secret": self.config.RECAPTCHA_SECRET_KEY, "response": token},
        )


class ScoreBotVerifier(BaseBotVerifier):
    """reCAPTCHA v3: passes only when upstream succeeds and the score clears the threshold."""

    types = ("v3",)

    async def verify(self, token: str) -> VerificationResult:
        data = await self._siteverify(token)
        logger.debug(f"{self.type_name} results: {data}")
        errors: List[str] = list(data.get("error-codes", []))

        if not data.get("success"):
            return self._result(score=data.get("score", 0.0), success=False, errors=errors)

        score = data.get("score", 0.0)
        result = self._result(score=score, success=True, errors=errors)
        if result.score < self.config.RECAPTCHA_SCORE_THRESHOLD:
            logger.warning(
                f"{self.type_name} score {result.score} below threshold {self.config.RECAPTCHA_SCORE_THRESHOLD}"
            )
            result.success = False
        return result


class CheckboxBotVerifier(BaseBotVerifier):
    """reCAPTCHA v2: the upstream success flag decides; the score is synthesized."""

    types = ("v2-checkbox", "v2-invisible")

    async def verify(self, token: str) -> VerificationResult:
        data = await self._siteverify(token)
        logger.debug(f"{self.type_name} results: {data}")
        success = bool(data.get("success"))

        # v2 has no native score
        return self._result(
            score=1.0 if success else 0.0,
            success=success,
            errors=list(data.get("error-codes", [])),
        )


class RiskAssessmentBotVerifier(BaseBotVerifier):
    """reCAPTCHA Enterprise: creates an assessment and applies the score threshold."""

    types = ("enterprise",)

    async def verify(self, token: str) -> VerificationResult:
        data = await self._post(
            ENTERPRISE_URL.format(project_id=self.config.RECAPTCHA_PROJECT_ID),
            params={"key": self.config.RECAPTCHA_API_KEY},
            json={
                "event": {
                    "token": token,
                    "siteKey": self.config.RECAPTCHA_SITE_KEY,
                    "expectedAction": EXPECTED_ACTION,
                }
            },
        )

        risk_analysis = data.get("riskAnalysis")
        if not isinstance(risk_analysis, dict) or "score" not in risk_analysis:
            logger.error(f"{self.type_name} assessment without risk analysis")
            raise BotVerificationError(f"{self.type_name} returned a malformed response")

        reasons = list(risk_analysis.get("reasons", []))
        token_properties = data.get("tokenProperties") or {}
        if token_properties.get("valid") is False:
            reasons.append(token_properties.get("invalidReason", "INVALID"))

        result = self._result(score=risk_analysis["score"], success=False, errors=reasons)
        result.success = (
            token_properties.get("valid") is not False
            and result.score >= self.config.RECAPTCHA_SCORE_THRESHOLD
        )

        logger.info(
            f"{self.type_name} assessment completed: score={result.score} reasons={reasons} success={result.success}"
        )
        return result


def create_bot_verifier(config: Settings) -> BaseBotVerifier:
    """Select the verifier configured by ``RECAPTCHA_TYPE``.

    Raises:
        ConfigurationError: If the type is not supported
    """
    verifier_class = BaseBotVerifier.registry.get(config.RECAPTCHA_TYPE)
    if verifier_class is None:
        supported = ", ".join(sorted(BaseBotVerifier.registry))
        raise ConfigurationError(
            f"Unsupported reCAPTCHA type: {config.RECAPTCHA_TYPE}. Supported types: {supported}"
        )
    return verifier_class(config, f"reCAPTCHA {config.RECAPTCHA_TYPE}")


bot_verifier = create_bot_verifier(settings)
