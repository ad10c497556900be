from __future__ import annotations

from conftest import NOW, make_change

from iac_policy import EvaluationEngine, evaluate
from iac_policy.exceptions import ExceptionStore
from iac_policy.models import ChangeSet, ProviderConfig, Severity, Verdict
from iac_policy.rules import RuleCatalog, RuleOverride, default_catalog

LOG_BUCKET_TAGS = {"Name": "bmc3-logs", "Owner": "ops", "Environment": "dev"}


def database_change_set() -> ChangeSet:
    database = make_change(
        "aws_db_instance.main",
        after={
            "storage_encrypted": True,
            "kms_key_id": None,
            "backup_retention_period": 3,
            "tags": {"Environment": "dsop"},
        },
    )
    return ChangeSet(resource_changes=(database,))


def test_production_database_fails():
    result = evaluate(database_change_set(), ExceptionStore(), now=NOW)

    assert result.verdict is Verdict.FAIL
    assert {"require_rds_kms_key", "require_backup_retention", "require_multi_az"} <= set(
        result.rule_ids
    )
    assert "require_rds_encryption" not in result.rule_ids
    assert result.advisory == []
    assert all(finding.severity is Severity.BLOCKING for finding in result.blocking)


def test_findings_follow_catalog_order():
    result = evaluate(database_change_set(), ExceptionStore(), now=NOW)

    catalog_ids = default_catalog().ids()
    positions = [catalog_ids.index(rule_id) for rule_id in result.rule_ids]
    assert positions == sorted(positions)
    assert result.rule_ids[:2] == ["require_tags", "require_tags"]


def test_evaluation_is_repeatable():
    engine = EvaluationEngine()
    change_set = database_change_set()
    store = ExceptionStore.from_documents(
        environment=[{"rule": "require_tags", "resource": "*", "expires": "2030-01-01"}]
    )

    first = engine.evaluate(change_set, store, now=NOW)
    second = engine.evaluate(change_set, store, now=NOW)

    assert first.to_dict() == second.to_dict()


def test_active_exceptions_clear_blocking_findings():
    store = ExceptionStore.from_documents(
        organization=[{"rule": "require_tags", "resource": "*", "expires": "2030-01-01"}],
        environment=[
            {"rule": rule_id, "resource": resource, "expires": "2030-01-01"}
            for rule_id, resource in (
                ("require_rds_kms_key", "aws_db_instance.main"),
                ("require_backup_retention", "*"),
                ("require_multi_az", "aws_db_instance.main"),
            )
        ],
    )

    result = evaluate(database_change_set(), store, now=NOW)

    assert result.verdict is Verdict.PASS
    assert result.findings == []


def test_expired_exception_reported_and_not_applied():
    store = ExceptionStore.from_documents(
        environment=[
            {
                "rule": "require_multi_az",
                "resource": "aws_db_instance.main",
                "expires": "2025-06-14",
            }
        ]
    )

    result = evaluate(database_change_set(), store, now=NOW)

    assert "require_multi_az" in result.rule_ids
    assert result.rule_ids[-1] == "expired_exception"
    assert result.advisory[-1].resource_address == "aws_db_instance.main"


def test_bucket_without_companions_reports_set_wide_findings():
    bucket = make_change(
        "aws_s3_bucket.logs",
        after={"bucket": "bmc3-logs", "tags": LOG_BUCKET_TAGS},
    )

    result = evaluate(ChangeSet(resource_changes=(bucket,)), ExceptionStore(), now=NOW)

    set_wide = [finding for finding in result.findings if finding.is_set_wide]
    assert {finding.rule_id for finding in set_wide} == {
        "require_s3_encryption_config",
        "require_s3_public_access_block",
        "require_s3_versioning",
    }
    assert result.verdict is Verdict.FAIL


def test_wildcard_exception_suppresses_set_wide_finding():
    bucket = make_change(
        "aws_s3_bucket.logs",
        after={"tags": LOG_BUCKET_TAGS},
    )
    store = ExceptionStore.from_documents(
        organization=[
            {"rule": "require_s3_encryption_config", "resource": "*", "expires": "2030-01-01"},
            {"rule": "require_s3_public_access_block", "resource": "*", "expires": "2030-01-01"},
        ]
    )

    result = evaluate(ChangeSet(resource_changes=(bucket,)), store, now=NOW)

    assert result.verdict is Verdict.PASS
    assert result.rule_ids == ["require_s3_versioning"]


def test_deletions_and_empty_plans_pass():
    removed = make_change(
        "aws_db_instance.old",
        after=None,
        actions=("delete",),
    )

    assert evaluate(ChangeSet(resource_changes=(removed,)), ExceptionStore(), now=NOW).passed
    assert evaluate(ChangeSet(), ExceptionStore(), now=NOW).findings == []


def test_provider_region_checked():
    providers = (ProviderConfig(key="aws", name="aws", region="us-east-1"),)

    result = evaluate(ChangeSet(provider_configs=providers), ExceptionStore(), now=NOW)

    (finding,) = result.findings
    assert finding.rule_id == "allowed_regions"
    assert finding.resource_address == "provider.aws"


def test_disabled_rules_are_skipped():
    catalog = default_catalog().with_overrides(
        {
            "require_tags": RuleOverride(enabled=False),
            "require_multi_az": RuleOverride(severity=Severity.ADVISORY),
        }
    )

    result = EvaluationEngine(catalog=catalog).evaluate(
        database_change_set(), ExceptionStore(), now=NOW
    )

    assert "require_tags" not in result.rule_ids
    assert [finding.rule_id for finding in result.advisory] == ["require_multi_az"]


def test_empty_catalog_runs_no_rules():
    bucket = make_change("aws_s3_bucket.logs", after={"bucket": "logs"})
    store = ExceptionStore.from_documents(
        environment=[{"rule": "require_tags", "resource": "*", "expires": "2020-01-01"}]
    )

    result = EvaluationEngine(catalog=RuleCatalog([])).evaluate(
        ChangeSet(resource_changes=(bucket,)), store, now=NOW
    )

    assert result.findings == []
    assert result.passed
