from pydantic import BaseModel, Field


class Pricing(BaseModel):
    # The API reports prices as decimal strings, in dollars per token.
    model_config = {"coerce_numbers_to_str": True}

    prompt: str = "0"
    completion: str = "0"


class TopProvider(BaseModel):
    id: str | None = None
    name: str | None = None
    context_length: int | None = None
    max_completion_tokens: int | None = None


class ModelInfo(BaseModel):
    """One entry from the ``GET /models`` catalog."""

    id: str
    name: str
    description: str | None = None
    context_length: int = 0
    pricing: Pricing = Field(default_factory=Pricing)
    top_provider: TopProvider | None = None

    @property
    def price_prompt(self) -> float:
        return _price(self.pricing.prompt)

    @property
    def price_completion(self) -> float:
        return _price(self.pricing.completion)

    @property
    def formatted_price_prompt(self) -> str:
        return f"${self.price_prompt * 1000:.4f}/1K tokens"

    @property
    def formatted_price_completion(self) -> str:
        return f"${self.price_completion * 1000:.4f}/1K tokens"


class ModelList(BaseModel):
    data: list[ModelInfo] = Field(default_factory=list)


def _price(value: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0
