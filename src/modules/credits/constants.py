"""Static pricing tables for playground credits."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ModelCostProfile:
    model: str
    provider: str
    provider_model_id: str
    credit_multiplier: float
    # USD per 1M tokens, used for cost monitoring only
    input_cost_per_million: float
    output_cost_per_million: float


MODEL_COST_PROFILES: dict[str, ModelCostProfile] = {
    "sonnet": ModelCostProfile(
        model="sonnet",
        provider="anthropic",
        provider_model_id="claude-3-5-sonnet-20241022",
        credit_multiplier=1.0,
        input_cost_per_million=3.0,
        output_cost_per_million=15.0,
    ),
    "opus": ModelCostProfile(
        model="opus",
        provider="anthropic",
        provider_model_id="claude-3-opus-20240229",
        credit_multiplier=5.0,
        input_cost_per_million=15.0,
        output_cost_per_million=75.0,
    ),
    "gpt-4o": ModelCostProfile(
        model="gpt-4o",
        provider="openai",
        provider_model_id="gpt-4o",
        credit_multiplier=2.0,
        input_cost_per_million=5.0,
        output_cost_per_million=20.0,
    ),
    "gpt-4o-mini": ModelCostProfile(
        model="gpt-4o-mini",
        provider="openai",
        provider_model_id="gpt-4o-mini",
        credit_multiplier=0.5,
        input_cost_per_million=0.6,
        output_cost_per_million=2.4,
    ),
    "gpt-4-turbo": ModelCostProfile(
        model="gpt-4-turbo",
        provider="openai",
        provider_model_id="gpt-4-turbo",
        credit_multiplier=2.0,
        input_cost_per_million=10.0,
        output_cost_per_million=30.0,
    ),
}

DEFAULT_MODEL = "sonnet"


@dataclass(frozen=True)
class CreditPackage:
    package: str
    credits: int
    price_cents: int
    bonus_credits: int = 0
    popular: bool = False

    @property
    def total_credits(self) -> int:
        return self.credits + self.bonus_credits


CREDIT_PACKAGES: dict[str, CreditPackage] = {
    "small": CreditPackage(package="small", credits=100, price_cents=500),
    "medium": CreditPackage(
        package="medium", credits=250, price_cents=1000, bonus_credits=25, popular=True
    ),
    "large": CreditPackage(
        package="large", credits=600, price_cents=2000, bonus_credits=50
    ),
}

PLAYGROUND_CREDITS_METADATA_TYPE = "playground_credits"

SIGNUP_DESCRIPTION = (
    "Welcome to PRPM! Here are 5 free playground credits to get you started."
)
