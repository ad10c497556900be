"""Tunable values read by the rule catalog."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Tuple


@dataclass(frozen=True, slots=True)
class TransportParameter:
    """Parameter a DB parameter group must set to enforce encrypted transport."""

    name: str
    value: str


def _default_transport_parameters() -> Dict[str, TransportParameter]:
    return {
        "postgres": TransportParameter("rds.force_ssl", "1"),
        "mysql": TransportParameter("require_secure_transport", "1"),
    }


@dataclass(frozen=True, slots=True)
class PolicySettings:
    """Organizational constants used by rule checks."""

    required_tags: Tuple[str, ...] = ("Name", "Owner", "Environment")
    taggable_types: Tuple[str, ...] = (
        "aws_instance",
        "aws_launch_template",
        "aws_db_instance",
        "aws_rds_cluster",
        "aws_s3_bucket",
        "aws_ebs_volume",
        "aws_security_group",
        "aws_vpc",
        "aws_subnet",
        "aws_kms_key",
        "aws_lb",
    )
    allowed_regions: Tuple[str, ...] = ("us-gov-west-1", "us-gov-east-1")
    name_prefix: str = "bmc3-"
    sensitive_ports: Tuple[int, ...] = (22, 3389, 3306, 5432, 1433, 1521, 27017)
    min_backup_retention_days: int = 7
    production_environments: Tuple[str, ...] = ("dsop", "prod", "production")
    transport_parameters: Mapping[str, TransportParameter] = field(
        default_factory=_default_transport_parameters
    )

    @classmethod
    def field_names(cls) -> Tuple[str, ...]:
        return tuple(item.name for item in fields(cls))

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "PolicySettings":
        """Build settings from manifest values, keeping defaults for omitted keys.

        Raises ``ValueError`` for unknown keys or values of the wrong shape.
        """

        unknown = sorted(set(values) - set(cls.field_names()))
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(unknown)}")

        kwargs: Dict[str, Any] = {}
        for key, value in values.items():
            if key == "name_prefix":
                kwargs[key] = _as_str(key, value)
            elif key == "min_backup_retention_days":
                kwargs[key] = _as_int(key, value)
            elif key == "sensitive_ports":
                kwargs[key] = tuple(_as_int(key, item) for item in _as_list(key, value))
            elif key == "transport_parameters":
                kwargs[key] = _as_transport_parameters(value)
            else:
                kwargs[key] = tuple(_as_str(key, item) for item in _as_list(key, value))
        return cls(**kwargs)


def _as_list(key: str, value: Any) -> list:
    if not isinstance(value, list):
        raise ValueError(f"Setting '{key}' must be a list")
    return value


def _as_str(key: str, value: Any) -> str:
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        raise ValueError(f"Setting '{key}' must contain strings")
    return str(value)


def _as_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"Setting '{key}' must contain integers")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Setting '{key}' must contain integers") from exc


def _as_transport_parameters(value: Any) -> Dict[str, TransportParameter]:
    if not isinstance(value, Mapping):
        raise ValueError("Setting 'transport_parameters' must be a mapping")

    parameters: Dict[str, TransportParameter] = {}
    for family, parameter in value.items():
        if not isinstance(parameter, Mapping) or not {"name", "value"} <= set(parameter):
            raise ValueError(f"transport_parameters.{family} must define 'name' and 'value'")
        parameters[str(family)] = TransportParameter(
            name=str(parameter["name"]), value=str(parameter["value"])
        )
    return parameters


__all__ = ["PolicySettings", "TransportParameter"]
