"""
editgate — unit tests for specialist stage validators

File: tests/unit/validators/test_specialist.py
Last updated: 2026-10-19

Purpose
- Validate the file-kind specific checks: hooks, listener cleanup, HTTP clients,
  auth flows, environment variables, secret exposure, Dockerfiles, and cloud config.

What this test file should cover
- Each validator ignores files it does not apply to.
- Blocking findings (conditional hooks, tokens in URLs, logged secrets, secret
  build args) fail the result; everything else only annotates it.
- Cloud configuration is checked structurally when it parses, without
  duplicating line-level findings.
"""

from __future__ import annotations

import json
import string

import pytest

from editgate.validators.base import Severity, ValidatorCategory
from editgate.validators.specialist import (
    ApiContractValidator,
    AuthFlowValidator,
    CloudConfigValidator,
    DockerBestPracticesValidator,
    EnvironmentConsistencyValidator,
    EventLeakDetectorValidator,
    HookRulesCheckerValidator,
    SecretsExposureCheckerValidator,
    parse_structured_config,
    shannon_entropy,
    structural_findings,
)

from . import codes, make_change, make_context, run_validator


def _lines(*lines: str) -> str:
    return "\n".join(lines)


def test_hook_called_inside_condition_is_blocking() -> None:
    content = _lines("function Widget() {", "  if (open) {", "    useState(0);", "  }", "}")
    context = make_context(make_change("src/Widget.tsx", content))

    result = run_validator(HookRulesCheckerValidator(), context)

    assert not result.passed
    assert codes(result) == ["HOOK_CONDITIONAL"]
    assert result.issues[0].line == 2


def test_hook_called_inside_loop_is_blocking() -> None:
    content = _lines(
        "function Widget() {",
        "  for (const item of items) {",
        "    useMemo(item);",
        "  }",
        "}",
    )
    context = make_context(make_change("src/Widget.tsx", content))

    result = run_validator(HookRulesCheckerValidator(), context)

    assert codes(result) == ["HOOK_IN_LOOP"]
    assert result.issues[0].line == 3


def test_hook_after_early_return_is_blocking() -> None:
    content = _lines("function Widget() {", "  return null;", "  useState(0);", "}")
    context = make_context(make_change("src/Widget.jsx", content))

    result = run_validator(HookRulesCheckerValidator(), context)

    assert codes(result) == ["HOOK_AFTER_RETURN"]
    assert result.issues[0].line == 3


def test_use_effect_without_dependency_array_warns() -> None:
    missing = make_context(make_change("src/hook.tsx", _lines("useEffect(() => {", "  run();", "});")))
    present = make_context(
        make_change("src/hook.tsx", _lines("useEffect(() => {", "  run();", "}, [id]);"))
    )

    result = run_validator(HookRulesCheckerValidator(), missing)

    assert result.passed
    assert codes(result) == ["HOOK_MISSING_DEPS"]
    assert run_validator(HookRulesCheckerValidator(), present).issues == ()


def test_helper_using_hooks_must_be_named_like_a_hook() -> None:
    body = ("  const [v] = useState(0);", "  return v;", "}")
    misnamed = make_context(make_change("src/a.ts", _lines("const helper = () => {", *body)))
    named = make_context(make_change("src/a.ts", _lines("const useHelper = () => {", *body)))

    result = run_validator(HookRulesCheckerValidator(), misnamed)

    assert codes(result) == ["HOOK_INVALID_NAME"]
    assert result.issues[0].severity is Severity.WARNING
    assert run_validator(HookRulesCheckerValidator(), named).issues == ()


def test_event_leak_detector_reports_missing_cleanup() -> None:
    content = _lines(
        "window.addEventListener('resize', onResize);",
        "const timer = setInterval(tick, 1000);",
        "bus.on('ready', start);",
        "stream$.subscribe(handle);",
    )
    context = make_context(make_change("src/a.ts", content))

    result = run_validator(EventLeakDetectorValidator(), context)

    assert result.passed
    assert codes(result) == [
        "LEAK_EVENT_LISTENER",
        "LEAK_INTERVAL",
        "LEAK_EMITTER",
        "LEAK_SUBSCRIPTION",
    ]
    assert [issue.line for issue in result.issues] == [1, 2, 3, 4]


def test_event_leak_detector_accepts_cleanup_anywhere_in_file() -> None:
    content = _lines(
        "window.addEventListener('resize', onResize);",
        "const timer = setInterval(tick, 1000);",
        "bus.on('ready', start);",
        "const sub = stream$.subscribe(handle);",
        "window.removeEventListener('resize', onResize);",
        "clearInterval(timer);",
        "bus.off('ready', start);",
        "sub.unsubscribe();",
    )
    context = make_context(make_change("src/a.ts", content))

    assert run_validator(EventLeakDetectorValidator(), context).issues == ()


def test_timeout_inside_effect_without_clear_is_info() -> None:
    content = _lines("useEffect(() => {", "  setTimeout(run, 100);", "}, []);")
    context = make_context(make_change("src/a.tsx", content))

    result = run_validator(EventLeakDetectorValidator(), context)

    assert codes(result) == ["LEAK_TIMEOUT"]
    assert result.issues[0].severity is Severity.INFO


def test_api_contract_flags_unhandled_unauthenticated_fetch() -> None:
    context = make_context(make_change("src/client.ts", "const res = await fetch(apiUrl);"))

    result = run_validator(ApiContractValidator(), context)

    assert result.passed
    assert codes(result) == ["API_NO_ERROR_HANDLING", "API_MISSING_AUTH"]


def test_api_contract_accepts_fetch_inside_try_with_auth_header() -> None:
    content = _lines(
        "try {",
        "  const res = await fetch(apiUrl, { headers: { Authorization: token } });",
        "} catch (err) {",
        "  report(err);",
        "}",
    )
    context = make_context(make_change("src/client.ts", content))

    assert run_validator(ApiContractValidator(), context).issues == ()


def test_api_contract_axios_requires_catch() -> None:
    bare = make_context(make_change("src/a.ts", "axios.get('/users').then(render);"))
    handled = make_context(
        make_change("src/a.ts", _lines("axios.get('/users').then(render)", "  .catch(report);"))
    )

    assert codes(run_validator(ApiContractValidator(), bare)) == ["API_AXIOS_NO_CATCH"]
    assert run_validator(ApiContractValidator(), handled).issues == ()


def test_auth_flow_reports_storage_validation_and_url_tokens() -> None:
    content = _lines(
        "localStorage.setItem('token', jwt);",
        "const token = readCookie();",
        "fetch('/me?token=' + token).catch(report);",
    )
    context = make_context(make_change("src/session.ts", content))

    result = run_validator(AuthFlowValidator(), context)

    assert not result.passed
    assert codes(result) == [
        "AUTH_INSECURE_STORAGE",
        "AUTH_NO_VALIDATION",
        "AUTH_NO_VALIDATION",
        "AUTH_TOKEN_IN_URL",
    ]
    assert result.issues[-1].severity is Severity.ERROR


def test_auth_flow_suggests_logout_and_ignores_unrelated_files() -> None:
    login = make_context(
        make_change("src/auth.ts", "export function login(user) { return api.post(user); }")
    )
    unrelated = make_context(make_change("src/math.ts", "const total = 1;"))

    result = run_validator(AuthFlowValidator(), login)

    assert codes(result) == ["AUTH_NO_LOGOUT"]
    assert result.issues[0].severity is Severity.INFO
    assert run_validator(AuthFlowValidator(), unrelated).issues == ()


def test_environment_consistency_checks_env_files_and_common_names() -> None:
    content = _lines(
        "const url = process.env.API_URL;",
        "const mode = process.env.NODE_ENV;",
        "const key = import.meta.env.VITE_KEY;",
    )
    context = make_context(
        make_change("src/config.ts", content),
        existing_files={".env.example": "API_URL=http://localhost\n"},
    )

    result = run_validator(EnvironmentConsistencyValidator(), context)

    assert codes(result) == ["ENV_UNDEFINED_VAR"]
    assert result.issues[0].file == "src/config.ts"
    assert result.issues[0].message == "Environment variable 'VITE_KEY' used but may not be defined"


def test_secrets_exposure_is_security_category() -> None:
    assert SecretsExposureCheckerValidator.category is ValidatorCategory.SECURITY


def test_secrets_exposure_blocks_logged_secrets() -> None:
    context = make_context(make_change("src/a.ts", "console.log('token', token);"))

    result = run_validator(SecretsExposureCheckerValidator(), context)

    assert not result.passed
    assert codes(result) == ["SECRET_LOGGED"]


def test_secrets_exposure_warns_on_secret_in_error_message() -> None:
    context = make_context(
        make_change("src/a.ts", "throw new Error(`bad password ${password}`);")
    )

    result = run_validator(SecretsExposureCheckerValidator(), context)

    assert result.passed
    assert codes(result) == ["SECRET_IN_ERROR"]


def test_secrets_exposure_flags_high_entropy_literals_outside_env_lookups() -> None:
    literal = string.ascii_letters[:32]
    hardcoded = make_context(make_change("src/a.ts", f'const apiKey = "{literal}";'))
    fallback = make_context(
        make_change("src/a.ts", f'const apiKey = process.env.KEY ?? "{literal}";')
    )

    assert codes(run_validator(SecretsExposureCheckerValidator(), hardcoded)) == [
        "SECRET_HIGH_ENTROPY"
    ]
    assert run_validator(SecretsExposureCheckerValidator(), fallback).issues == ()


def test_shannon_entropy() -> None:
    assert shannon_entropy("") == 0.0
    assert shannon_entropy("aaaa") == 0.0
    assert shannon_entropy("abcd") == pytest.approx(2.0)


def test_docker_reports_latest_tag_root_user_and_healthcheck() -> None:
    context = make_context(make_change("Dockerfile", _lines("FROM node:latest", "RUN npm ci")))

    result = run_validator(DockerBestPracticesValidator(), context)

    assert result.passed
    assert codes(result) == ["DOCKER_LATEST_TAG", "DOCKER_ROOT_USER", "DOCKER_NO_HEALTHCHECK"]
    assert result.issues[1].line == 1


def test_docker_secret_build_arg_is_blocking() -> None:
    content = _lines(
        "FROM node:20-alpine",
        "ARG NPM_TOKEN",
        "USER node",
        "HEALTHCHECK CMD curl -f http://localhost/ || exit 1",
    )
    context = make_context(make_change("docker/app.Dockerfile", content))

    result = run_validator(DockerBestPracticesValidator(), context)

    assert not result.passed
    assert codes(result) == ["DOCKER_SECRET_ARG"]
    assert result.issues[0].line == 2


def test_docker_multi_stage_references_and_explicit_root() -> None:
    content = _lines(
        "FROM node:20 AS build",
        "RUN npm run build",
        "FROM build",
        "USER root",
        "HEALTHCHECK CMD true",
    )
    context = make_context(make_change("Dockerfile", content))

    result = run_validator(DockerBestPracticesValidator(), context)

    assert codes(result) == ["DOCKER_ROOT_USER"]
    assert result.issues[0].line == 4


def test_docker_ignores_non_dockerfiles() -> None:
    context = make_context(make_change("src/app.ts", "FROM node"))

    assert run_validator(DockerBestPracticesValidator(), context).issues == ()


def test_cloud_config_finds_wildcard_action_in_block_list() -> None:
    content = _lines(
        "provider:",
        "  name: aws",
        "  iam:",
        "    role:",
        "      statements:",
        "        - Effect: Allow",
        "          Action:",
        '            - "*"',
        "          Resource:",
        "            - !GetAtt Table.Arn",
    )
    context = make_context(make_change("serverless.yml", content))

    result = run_validator(CloudConfigValidator(), context)

    assert result.passed
    assert codes(result) == ["CLOUD_PERMISSIVE_ACTION"]
    assert result.issues[0].line is None


def test_cloud_config_does_not_duplicate_line_findings() -> None:
    content = _lines(
        "provider:",
        "  iam:",
        "    role:",
        "      statements:",
        "        - Effect: Allow",
        "          Action: '*'",
        "          Resource: arn:aws:s3:::bucket",
    )
    context = make_context(make_change("serverless.yml", content))

    result = run_validator(CloudConfigValidator(), context)

    assert codes(result) == ["CLOUD_PERMISSIVE_ACTION"]
    assert result.issues[0].line == 6


def test_cloud_config_reads_json_policies() -> None:
    policy = {
        "Statement": [
            {
                "Effect": "Allow",
                "Principal": "*",
                "Action": "s3:GetObject",
                "Resource": "arn:aws:s3:::bucket/*",
            }
        ]
    }
    context = make_context(make_change("infra/policy.aws.json", json.dumps(policy, indent=2)))

    result = run_validator(CloudConfigValidator(), context)

    assert codes(result) == ["CLOUD_PUBLIC_ACCESS"]


def test_parse_structured_config_tolerates_unknown_formats() -> None:
    assert parse_structured_config("netlify.toml", "[build]") is None
    assert parse_structured_config("serverless.yml", "a: [") is None
    assert parse_structured_config("vercel.json", '{"public": true}') == {"public": True}


def test_structural_findings() -> None:
    assert structural_findings({"Principal": {"AWS": ["*"]}}) == {"CLOUD_PUBLIC_ACCESS"}
    assert structural_findings({"acl": "public-read"}) == {"CLOUD_PUBLIC_ACCESS"}
    assert structural_findings([{"Resource": ["*"]}]) == {"CLOUD_PERMISSIVE_RESOURCE"}
    assert structural_findings({"Action": "s3:GetObject"}) == set()
