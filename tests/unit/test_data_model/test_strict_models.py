"""Unit tests for the shared strict model base."""

import pytest
from pydantic import ValidationError

from src.data_model import StrictBaseModel
from src.features.access import AccessPolicy
from src.features.errors import HttpStatusError
from src.features.timing import PhaseTiming, TimingReport


MODELS: list[tuple[type[StrictBaseModel], dict[str, object]]] = [
    (AccessPolicy, {}),
    (HttpStatusError, {"code": 404, "message": "Not Found"}),
    (PhaseTiming, {}),
    (TimingReport, {}),
]


class TestStrictModels:
    """Tests for models built on StrictBaseModel."""

    @pytest.mark.unit
    @pytest.mark.parametrize(("model", "values"), MODELS)
    def test_unknown_fields_rejected(
        self, model: type[StrictBaseModel], values: dict[str, object]
    ) -> None:
        """Test that extra fields fail validation."""
        assert issubclass(model, StrictBaseModel)
        with pytest.raises(ValidationError):
            model(**values, unexpected=True)

    @pytest.mark.unit
    @pytest.mark.parametrize(("model", "values"), MODELS)
    def test_instances_frozen(
        self, model: type[StrictBaseModel], values: dict[str, object]
    ) -> None:
        """Test that instances cannot be modified."""
        instance = model(**values)
        field = next(iter(model.model_fields))

        with pytest.raises(ValidationError):
            setattr(instance, field, getattr(instance, field))
