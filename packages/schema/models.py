# Contract-only models. Field aliases follow the classify_patch artifact keys.
from typing import Any, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from packages.schema.numbers import parse_number


VerdictLabel = Literal["Risky", "Not risky"]


class ClassificationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    non_risky_probability: float
    risky_probability: float

    @field_validator("non_risky_probability", "risky_probability", mode="before")
    @classmethod
    def _normalize(cls, value: Any) -> float:
        return parse_number(value)

    @classmethod
    def from_payload(cls, payload: Any) -> "ClassificationResult":
        """Build from the two-element ``probs.json`` array."""
        if not isinstance(payload, (list, tuple)) or len(payload) < 2:
            raise ValueError("expected a [non_risky, risky] probability pair")
        return cls(non_risky_probability=payload[0], risky_probability=payload[1])


class FeatureRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int
    name: str
    value: float
    shap_value: float = Field(validation_alias=AliasChoices("shap", "shap_value"))
    monotonicity: float
    median_bug_introducing: float
    median_clean: float
    percentile_buggy_higher: float = Field(
        validation_alias=AliasChoices("perc_buggy_values_higher_than_median", "percentile_buggy_higher")
    )
    percentile_buggy_lower: float = Field(
        validation_alias=AliasChoices("perc_buggy_values_lower_than_median", "percentile_buggy_lower")
    )
    percentile_clean_higher: float = Field(
        validation_alias=AliasChoices("perc_clean_values_higher_than_median", "percentile_clean_higher")
    )
    percentile_clean_lower: float = Field(
        validation_alias=AliasChoices("perc_clean_values_lower_than_median", "percentile_clean_lower")
    )
    plot: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _spearman_to_monotonicity(cls, data: Any) -> Any:
        # importances.json carries [correlation, pvalue]; only the correlation is used
        if isinstance(data, dict) and "monotonicity" not in data and "spearman" in data:
            spearman = data["spearman"]
            data = dict(data)
            data["monotonicity"] = spearman[0] if isinstance(spearman, (list, tuple)) else spearman
        return data

    @field_validator(
        "value",
        "shap_value",
        "monotonicity",
        "median_bug_introducing",
        "median_clean",
        "percentile_buggy_higher",
        "percentile_buggy_lower",
        "percentile_clean_higher",
        "percentile_clean_lower",
        mode="before",
    )
    @classmethod
    def _normalize(cls, value: Any) -> float:
        return parse_number(value)

    @property
    def increases_risk(self) -> bool:
        return self.shap_value > 0


class MethodRiskRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    file_name: str
    method_name: str
    start_line: int = Field(gt=0, validation_alias=AliasChoices("method_start_line", "start_line"))
    confidence: float = Field(
        ge=0.0, le=1.0, validation_alias=AliasChoices("prediction_true", "confidence")
    )
    predicted_risky: bool = Field(validation_alias=AliasChoices("prediction", "predicted_risky"))

    @field_validator("start_line", mode="before")
    @classmethod
    def _normalize_line(cls, value: Any) -> int:
        number = parse_number(value)
        if not number.is_integer():
            raise ValueError(f"start line must be an integer, got {value!r}")
        return int(number)

    @field_validator("confidence", mode="before")
    @classmethod
    def _normalize_confidence(cls, value: Any) -> float:
        return parse_number(value)

    @field_validator("predicted_risky", mode="before")
    @classmethod
    def _normalize_prediction(cls, value: Any) -> bool:
        if isinstance(value, str):
            return value.strip().upper() == "TRUE"
        return bool(value)


class Verdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: VerdictLabel
    confidence_percent: int

    @property
    def is_risky(self) -> bool:
        return self.label == "Risky"


def parse_records(model: type, payload: Any, what: str) -> List[Any]:
    """Validate a JSON array of records, keeping payload order."""
    if not isinstance(payload, list):
        raise ValueError(f"{what} payload must be a JSON array, got {type(payload).__name__}")
    return [model.model_validate(item) for item in payload]
