from __future__ import annotations

import pytest

from iac_policy.models import Severity
from iac_policy.rules.compute import (
    asg_launch_template,
    deny_all_traffic_ingress,
    ingress_rules,
    no_public_ip,
    require_imdsv2,
    require_instance_profile,
    require_metadata_options,
    require_ssh_key,
    restrict_sensitive_ports,
)


def sg_with_ingress(change_factory, *ingress):
    return change_factory("aws_security_group.web", after={"ingress": list(ingress)})


def ingress(from_port, to_port, protocol="tcp", cidrs=("0.0.0.0/0",), ipv6=()):
    return {
        "from_port": from_port,
        "to_port": to_port,
        "protocol": protocol,
        "cidr_blocks": list(cidrs),
        "ipv6_cidr_blocks": list(ipv6),
    }


def test_port_range_overlapping_sensitive_port(change_factory, rule_runner):
    group = sg_with_ingress(change_factory, ingress(20, 25))

    findings = rule_runner(restrict_sensitive_ports, group)

    assert len(findings) == 1
    assert "allows port 22" in findings[0].message
    assert findings[0].resource_address == "aws_security_group.web"


def test_port_range_without_overlap(change_factory, rule_runner):
    group = sg_with_ingress(change_factory, ingress(30, 40))

    assert rule_runner(restrict_sensitive_ports, group) == []


@pytest.mark.parametrize("from_port,to_port", [(22, 22), (22, 80), (1, 22)])
def test_port_range_bounds_are_inclusive(change_factory, rule_runner, from_port, to_port):
    group = sg_with_ingress(change_factory, ingress(from_port, to_port))

    assert len(rule_runner(restrict_sensitive_ports, group)) == 1


def test_wide_range_reports_each_sensitive_port(change_factory, rule_runner):
    group = sg_with_ingress(change_factory, ingress(0, 65535))

    findings = rule_runner(restrict_sensitive_ports, group)

    assert len(findings) == 7
    assert "allows port 22" in findings[0].message
    assert "allows port 27017" in findings[-1].message


def test_restricted_source_is_allowed(change_factory, rule_runner):
    group = sg_with_ingress(change_factory, ingress(22, 22, cidrs=("10.0.0.0/8",)))

    assert rule_runner(restrict_sensitive_ports, group) == []


def test_open_ipv6_source_is_flagged(change_factory, rule_runner):
    group = sg_with_ingress(change_factory, ingress(3389, 3389, cidrs=(), ipv6=("::/0",)))

    (finding,) = rule_runner(restrict_sensitive_ports, group)

    assert "allows port 3389" in finding.message


def test_missing_ports_are_not_applicable(change_factory, rule_runner):
    group = sg_with_ingress(change_factory, {"protocol": "tcp", "cidr_blocks": ["0.0.0.0/0"]})

    assert rule_runner(restrict_sensitive_ports, group) == []


@pytest.mark.parametrize("port", [float("inf"), float("-inf"), float("nan"), "Infinity"])
def test_non_finite_ports_are_not_applicable(change_factory, rule_runner, port):
    group = sg_with_ingress(change_factory, ingress(port, 22))

    assert rule_runner(restrict_sensitive_ports, group) == []
    assert rule_runner(deny_all_traffic_ingress, group) == []
    (parsed,) = ingress_rules(group)
    assert parsed.from_port is None


def test_security_group_rule_resources(change_factory, rule_runner):
    ingress_rule = change_factory(
        "aws_security_group_rule.ssh",
        after={"type": "ingress", **ingress(22, 22)},
    )
    egress_rule = change_factory(
        "aws_security_group_rule.out",
        after={"type": "egress", **ingress(0, 65535)},
    )

    findings = rule_runner(restrict_sensitive_ports, ingress_rule, egress_rule)

    assert [finding.resource_address for finding in findings] == ["aws_security_group_rule.ssh"]


def test_vpc_ingress_rule_resource(change_factory):
    change = change_factory(
        "aws_vpc_security_group_ingress_rule.all",
        after={"ip_protocol": "-1", "cidr_ipv4": "0.0.0.0/0"},
    )

    (rule,) = ingress_rules(change)

    assert rule.unrestricted
    assert rule.all_protocols
    assert rule.all_ports
    assert not rule.covers(22)


def test_all_traffic_ingress(change_factory, rule_runner):
    group = sg_with_ingress(
        change_factory,
        ingress(0, 0, protocol="-1"),
        ingress(0, 0, protocol="-1", cidrs=("10.0.0.0/8",)),
        ingress(0, 0, protocol="tcp"),
    )

    findings = rule_runner(deny_all_traffic_ingress, group)

    assert len(findings) == 1
    assert "aws_security_group.web ingress[0] allows all traffic" in findings[0].message


def test_public_ip_on_instance(change_factory, rule_runner):
    public = change_factory("aws_instance.web", after={"associate_public_ip_address": True})
    private = change_factory("aws_instance.db", after={"associate_public_ip_address": False})
    unknown = change_factory("aws_instance.tmp", after={})

    findings = rule_runner(no_public_ip, public, private, unknown)

    assert [finding.resource_address for finding in findings] == ["aws_instance.web"]


def test_public_ip_on_launch_template(change_factory, rule_runner):
    template = change_factory(
        "aws_launch_template.web",
        after={"network_interfaces": [{"associate_public_ip_address": "true"}]},
    )

    (finding,) = rule_runner(no_public_ip, template)

    assert "network_interfaces[0]" in finding.message


def test_metadata_options_absent(change_factory, rule_runner):
    missing = change_factory("aws_instance.web", after={"metadata_options": []})
    present = change_factory(
        "aws_launch_template.web", after={"metadata_options": [{"http_tokens": "required"}]}
    )

    findings = rule_runner(require_metadata_options, missing, present)

    assert [finding.resource_address for finding in findings] == ["aws_instance.web"]
    assert rule_runner(require_imdsv2, missing, present) == []


def test_imdsv2_optional_tokens(change_factory, rule_runner):
    optional = change_factory(
        "aws_instance.web", after={"metadata_options": [{"http_tokens": "optional"}]}
    )
    unset = change_factory("aws_instance.app", after={"metadata_options": [{}]})

    findings = rule_runner(require_imdsv2, optional, unset)

    assert len(findings) == 1
    assert "'optional'" in findings[0].message
    assert rule_runner(require_metadata_options, optional, unset) == []


def test_instance_profile(change_factory, rule_runner):
    without = change_factory("aws_instance.web", after={"iam_instance_profile": ""})
    with_profile = change_factory("aws_instance.app", after={"iam_instance_profile": "app"})
    template = change_factory("aws_launch_template.web", after={"iam_instance_profile": []})
    template_ok = change_factory(
        "aws_launch_template.app", after={"iam_instance_profile": [{"arn": "arn:aws:iam::1:x"}]}
    )

    findings = rule_runner(require_instance_profile, without, with_profile, template, template_ok)

    assert [finding.resource_address for finding in findings] == [
        "aws_instance.web",
        "aws_launch_template.web",
    ]


def test_ssh_key(change_factory, rule_runner):
    without = change_factory("aws_instance.web", after={})
    with_key = change_factory("aws_launch_template.app", after={"key_name": "ops"})

    findings = rule_runner(require_ssh_key, without, with_key)

    assert [finding.resource_address for finding in findings] == ["aws_instance.web"]
    assert findings[0].severity is Severity.BLOCKING


def test_asg_launch_configuration_advisory(change_factory, rule_runner):
    legacy = change_factory("aws_autoscaling_group.legacy", after={"launch_configuration": "lc-1"})
    modern = change_factory(
        "aws_autoscaling_group.modern",
        after={"launch_template": [{"id": "lt-1", "version": "$Latest"}]},
    )

    findings = rule_runner(asg_launch_template, legacy, modern)

    assert [finding.resource_address for finding in findings] == ["aws_autoscaling_group.legacy"]
    assert findings[0].severity is Severity.ADVISORY
