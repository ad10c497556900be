"""Compute rules: network exposure and instance hardening."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, List, Mapping, Optional, Tuple

from ..models import ResourceChange, Severity
from .attributes import as_int, is_blank, is_true
from .base import Domain, RuleContext, Violation, rule

INSTANCE_TYPES = ("aws_instance", "aws_launch_template")
SECURITY_GROUP_TYPES = (
    "aws_security_group",
    "aws_security_group_rule",
    "aws_vpc_security_group_ingress_rule",
)
OPEN_IPV4 = "0.0.0.0/0"
OPEN_IPV6 = "::/0"
ALL_PROTOCOLS = ("-1", "all")


@dataclass(frozen=True, slots=True)
class IngressRule:
    """Ingress permission flattened from any security group resource shape."""

    address: str
    label: str
    protocol: str
    from_port: Optional[int]
    to_port: Optional[int]
    sources: Tuple[str, ...]

    @property
    def unrestricted(self) -> bool:
        return OPEN_IPV4 in self.sources or OPEN_IPV6 in self.sources

    @property
    def all_protocols(self) -> bool:
        return self.protocol in ALL_PROTOCOLS

    @property
    def all_ports(self) -> bool:
        if self.from_port is None and self.to_port is None:
            return self.all_protocols
        return (self.from_port, self.to_port) in ((0, 0), (0, 65535))

    def covers(self, port: int) -> bool:
        """Closed-interval check of ``port`` against ``[from_port, to_port]``."""

        if self.from_port is None or self.to_port is None:
            return False
        return self.from_port <= port <= self.to_port


def ingress_rules(change: ResourceChange) -> List[IngressRule]:
    """Return ingress permissions declared by a security group resource."""

    if change.type == "aws_security_group":
        return [
            _ingress_from_block(change.address, f"{change.address} ingress[{index}]", block)
            for index, block in enumerate(change.blocks("ingress"))
        ]

    if change.type == "aws_security_group_rule":
        if change.attribute("type") != "ingress" or not change.after:
            return []
        return [_ingress_from_block(change.address, change.address, change.after)]

    if change.type == "aws_vpc_security_group_ingress_rule" and change.after:
        sources = tuple(
            str(value)
            for value in (change.attribute("cidr_ipv4"), change.attribute("cidr_ipv6"))
            if value
        )
        return [
            IngressRule(
                address=change.address,
                label=change.address,
                protocol=str(change.attribute("ip_protocol", "")),
                from_port=as_int(change.attribute("from_port")),
                to_port=as_int(change.attribute("to_port")),
                sources=sources,
            )
        ]

    return []


def _ingress_from_block(address: str, label: str, block: Mapping[str, Any]) -> IngressRule:
    sources: List[str] = []
    for key in ("cidr_blocks", "ipv6_cidr_blocks"):
        values = block.get(key) or []
        if isinstance(values, list):
            sources.extend(str(value) for value in values)
    return IngressRule(
        address=address,
        label=label,
        protocol=str(block.get("protocol", "")),
        from_port=as_int(block.get("from_port")),
        to_port=as_int(block.get("to_port")),
        sources=tuple(sources),
    )


# Network exposure -----------------------------------------------------------
@rule(
    "no_public_ip",
    domain=Domain.COMPUTE,
    severity=Severity.BLOCKING,
    compliance_ref="NIST 800-53 SC-7",
)
def no_public_ip(context: RuleContext) -> Iterator[Violation]:
    """Instances must not request a public IP address."""

    for change in context.change_set.in_scope("aws_instance"):
        if is_true(change.attribute("associate_public_ip_address")):
            yield Violation(change.address, f"{change.address} requests a public IP address")

    for change in context.change_set.in_scope("aws_launch_template"):
        for index, interface in enumerate(change.blocks("network_interfaces")):
            if is_true(interface.get("associate_public_ip_address")):
                yield Violation(
                    change.address,
                    f"{change.address} network_interfaces[{index}] requests a public IP address",
                )


@rule(
    "restrict_sensitive_ports",
    domain=Domain.COMPUTE,
    severity=Severity.BLOCKING,
    compliance_ref="NIST 800-53 SC-7(4)",
)
def restrict_sensitive_ports(context: RuleContext) -> Iterator[Violation]:
    """Sensitive ports must not be reachable from the whole internet."""

    ports = context.settings.sensitive_ports
    for change in context.change_set.in_scope(*SECURITY_GROUP_TYPES):
        for ingress in ingress_rules(change):
            if not ingress.unrestricted:
                continue
            for port in ports:
                if ingress.covers(port):
                    yield Violation(
                        change.address,
                        f"{ingress.label} allows port {port} from "
                        f"{', '.join(ingress.sources)} "
                        f"(ports {ingress.from_port}-{ingress.to_port})",
                    )


@rule(
    "deny_all_traffic_ingress",
    domain=Domain.COMPUTE,
    severity=Severity.BLOCKING,
    compliance_ref="NIST 800-53 SC-7(5)",
)
def deny_all_traffic_ingress(context: RuleContext) -> Iterator[Violation]:
    """Ingress must not allow every protocol on every port from anywhere."""

    for change in context.change_set.in_scope(*SECURITY_GROUP_TYPES):
        for ingress in ingress_rules(change):
            if ingress.unrestricted and ingress.all_protocols and ingress.all_ports:
                yield Violation(
                    change.address,
                    f"{ingress.label} allows all traffic from {', '.join(ingress.sources)}",
                )


# Metadata and credentials ---------------------------------------------------
@rule(
    "require_metadata_options",
    domain=Domain.COMPUTE,
    severity=Severity.BLOCKING,
    compliance_ref="NIST 800-53 AC-3",
)
def require_metadata_options(context: RuleContext) -> Iterator[Violation]:
    """Instances and launch templates must configure the metadata service."""

    for change in context.change_set.in_scope(*INSTANCE_TYPES):
        if change.block("metadata_options") is None:
            yield Violation(
                change.address,
                f"{change.address} does not define metadata_options; IMDSv2 must be required",
            )


@rule(
    "require_imdsv2",
    domain=Domain.COMPUTE,
    severity=Severity.BLOCKING,
    compliance_ref="NIST 800-53 AC-3",
)
def require_imdsv2(context: RuleContext) -> Iterator[Violation]:
    """Instance metadata must require session tokens (IMDSv2)."""

    for change in context.change_set.in_scope(*INSTANCE_TYPES):
        options = change.block("metadata_options")
        if options is None:
            continue
        tokens = options.get("http_tokens")
        if tokens is None:
            continue
        if tokens != "required":
            yield Violation(
                change.address,
                f"{change.address} sets metadata_options.http_tokens to '{tokens}'; "
                "it must be 'required'",
            )


@rule(
    "require_instance_profile",
    domain=Domain.COMPUTE,
    severity=Severity.BLOCKING,
    compliance_ref="NIST 800-53 IA-5(7)",
)
def require_instance_profile(context: RuleContext) -> Iterator[Violation]:
    """Compute must obtain credentials from an attached instance profile."""

    for change in context.change_set.in_scope("aws_instance"):
        if is_blank(change.attribute("iam_instance_profile")):
            yield Violation(
                change.address, f"{change.address} does not attach an IAM instance profile"
            )

    for change in context.change_set.in_scope("aws_launch_template"):
        profile = change.block("iam_instance_profile") or {}
        if is_blank(profile.get("name")) and is_blank(profile.get("arn")):
            yield Violation(
                change.address, f"{change.address} does not attach an IAM instance profile"
            )


@rule(
    "require_ssh_key",
    domain=Domain.COMPUTE,
    severity=Severity.BLOCKING,
    compliance_ref="NIST 800-53 IA-2",
)
def require_ssh_key(context: RuleContext) -> Iterator[Violation]:
    """Instances and launch templates must reference a managed SSH key pair."""

    for change in context.change_set.in_scope(*INSTANCE_TYPES):
        if is_blank(change.attribute("key_name")):
            yield Violation(change.address, f"{change.address} does not specify key_name")


@rule(
    "asg_launch_template",
    domain=Domain.COMPUTE,
    severity=Severity.ADVISORY,
    compliance_ref="NIST 800-53 CM-2",
)
def asg_launch_template(context: RuleContext) -> Iterator[Violation]:
    """Auto scaling groups should launch from a launch template."""

    for change in context.change_set.in_scope("aws_autoscaling_group"):
        configuration = change.attribute("launch_configuration")
        if is_blank(configuration):
            continue
        if change.block("launch_template") or change.block("mixed_instances_policy"):
            continue
        yield Violation(
            change.address,
            f"{change.address} uses launch configuration '{configuration}'; "
            "use a launch template instead",
        )


RULES = (
    no_public_ip,
    restrict_sensitive_ports,
    deny_all_traffic_ingress,
    require_metadata_options,
    require_imdsv2,
    require_instance_profile,
    require_ssh_key,
    asg_launch_template,
)
