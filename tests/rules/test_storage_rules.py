from __future__ import annotations

from iac_policy.models import WILDCARD, Severity
from iac_policy.rules.storage import (
    require_ebs_encryption,
    require_ebs_kms_key,
    require_s3_encryption_config,
    require_s3_kms_encryption,
    require_s3_public_access_block,
    require_s3_versioning,
)


def test_ebs_encryption_two_step(change_factory, rule_runner):
    plain = change_factory("aws_ebs_volume.data", after={"encrypted": False})
    no_key = change_factory("aws_ebs_volume.logs", after={"encrypted": True})
    keyed = change_factory("aws_ebs_volume.db", after={"encrypted": True, "kms_key_id": "key"})
    unknown = change_factory("aws_ebs_volume.tmp", after={})

    volumes = (plain, no_key, keyed, unknown)
    encryption = rule_runner(require_ebs_encryption, *volumes)
    keys = rule_runner(require_ebs_kms_key, *volumes)

    assert [finding.resource_address for finding in encryption] == ["aws_ebs_volume.data"]
    assert [finding.resource_address for finding in keys] == ["aws_ebs_volume.logs"]


def test_bucket_without_encryption_config_is_set_wide(change_factory, rule_runner):
    buckets = [
        change_factory("aws_s3_bucket.logs", after={}),
        change_factory("aws_s3_bucket.data", after={}),
    ]

    (finding,) = rule_runner(require_s3_encryption_config, *buckets)

    assert finding.resource_address == WILDCARD
    assert finding.is_set_wide
    assert finding.message.startswith("2 aws_s3_bucket resource(s) planned")


def test_encryption_config_present(change_factory, rule_runner):
    bucket = change_factory("aws_s3_bucket.logs", after={})
    config = change_factory(
        "aws_s3_bucket_server_side_encryption_configuration.logs",
        after={
            "rule": [
                {"apply_server_side_encryption_by_default": [{"sse_algorithm": "aws:kms"}]}
            ]
        },
    )

    assert rule_runner(require_s3_encryption_config, bucket, config) == []
    assert rule_runner(require_s3_kms_encryption, bucket, config) == []


def test_presence_rules_need_a_bucket(change_factory, rule_runner):
    deleted = change_factory("aws_s3_bucket.old", after=None, actions=("delete",))

    assert rule_runner(require_s3_encryption_config, deleted) == []
    assert rule_runner(require_s3_public_access_block) == []


def test_sse_algorithm_must_be_kms(change_factory, rule_runner):
    config = change_factory(
        "aws_s3_bucket_server_side_encryption_configuration.logs",
        after={
            "rule": [
                {"apply_server_side_encryption_by_default": [{"sse_algorithm": "AES256"}]},
                {"bucket_key_enabled": True},
            ]
        },
    )

    (finding,) = rule_runner(require_s3_kms_encryption, config)

    assert "'AES256'" in finding.message


def test_public_access_block_and_versioning(change_factory, rule_runner):
    bucket = change_factory("aws_s3_bucket.logs", after={})
    block = change_factory("aws_s3_bucket_public_access_block.logs", after={})

    assert rule_runner(require_s3_public_access_block, bucket, block) == []

    (versioning,) = rule_runner(require_s3_versioning, bucket, block)
    assert versioning.severity is Severity.ADVISORY
    assert versioning.resource_address == WILDCARD


def test_companion_planned_for_deletion_does_not_count(change_factory, rule_runner):
    bucket = change_factory("aws_s3_bucket.logs", after={})
    removed = change_factory(
        "aws_s3_bucket_public_access_block.logs", after=None, actions=("delete",)
    )
    replaced = change_factory(
        "aws_s3_bucket_public_access_block.data", after={}, actions=("delete", "create")
    )
    unchanged = change_factory(
        "aws_s3_bucket_public_access_block.web", after={}, actions=("no-op",)
    )

    (finding,) = rule_runner(require_s3_public_access_block, bucket, removed)

    assert finding.resource_address == WILDCARD
    assert rule_runner(require_s3_public_access_block, bucket, removed, replaced) == []
    assert rule_runner(require_s3_public_access_block, bucket, unchanged) == []
