import copy
import json
import logging
import sys
from pathlib import Path

import pytest
import structlog

# Ensure src package is importable without installation
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if SRC.exists():
    sys.path.insert(0, str(SRC))


SAMPLE_RESULT = {
    "projects": [
        {
            "id": "Maven:com.example:app:1.0",
            "definition_file_path": "app/pom.xml",
            "declared_licenses": ["Apache-2.0"],
            "scopes": [
                {
                    "name": "compile",
                    "dependencies": [
                        {
                            "id": "Maven:org.lib:core:2.0",
                            "dependencies": [{"id": "Maven:org.lib:util:1.1", "linkage": "STATIC"}],
                        }
                    ],
                },
                {"name": "test", "dependencies": [{"id": "Maven:org.test:junit:4.13"}]},
            ],
        },
        {
            "id": "NPM::web:1.0",
            "definition_file_path": "web/package.json",
            "declared_licenses": ["MIT"],
            "scopes": [
                {
                    "name": "dependencies",
                    "dependencies": [{"id": "NPM::left-pad:1.3.0"}, {"id": "NPM::lodash:4.17.21"}],
                }
            ],
        },
    ],
    "packages": [
        {"id": "Maven:org.lib:core:2.0", "declared_licenses": ["Apache-2.0"]},
        {"id": "Maven:org.lib:util:1.1", "declared_licenses": ["MIT OR Apache-2.0"]},
        {"id": "Maven:org.test:junit:4.13", "declared_licenses": ["EPL-1.0"]},
        {"id": "NPM::left-pad:1.3.0", "declared_licenses": ["MIT"]},
        {"id": "NPM::lodash:4.17.21", "declared_licenses": ["MIT"], "concluded_license": "MIT"},
    ],
    "issues": [
        {
            "id": "Maven:org.lib:core:2.0",
            "source": "Maven",
            "message": "Could not resolve POM",
            "severity": "ERROR",
        },
        {
            "id": "NPM::left-pad:1.3.0",
            "source": "NPM",
            "message": "Deprecated package",
            "severity": "WARNING",
        },
    ],
    "rule_violations": [
        {
            "pkg": "Maven:org.test:junit:4.13",
            "rule": "UNHANDLED_LICENSE",
            "license": "EPL-1.0",
            "license_source": "DECLARED",
            "message": "License EPL-1.0 is not handled.",
            "severity": "ERROR",
        },
        {
            "pkg": "NPM::lodash:4.17.21",
            "rule": "MISSING_NOTICE",
            "license": "MIT",
            "license_source": "CONCLUDED",
            "message": "No NOTICE file shipped.",
            "severity": "WARNING",
            "how_to_fix": "Add a NOTICE file.",
        },
    ],
    "vulnerabilities": [
        {
            "pkg": "NPM::lodash:4.17.21",
            "id": "CVE-2021-23337",
            "advisor": "OSV",
            "summary": "Command injection via template",
            "references": [
                {"url": "https://osv.dev/CVE-2021-23337", "scoring_system": "CVSS3", "severity": "7.2"}
            ],
        },
        {
            "pkg": "Maven:org.lib:core:2.0",
            "id": "GHSA-0000-1111-2222",
            "advisor": "VulnerableCode",
            "summary": "Denial of service",
            "references": [
                {"url": "https://example.org/GHSA-0000-1111-2222", "scoring_system": "CVSS2", "severity": "5.0"}
            ],
        },
    ],
    "resolutions": {
        "issues": [{"message": "Deprecated.*", "reason": "CANT_FIX_ISSUE", "comment": "No replacement yet."}],
        "vulnerabilities": [
            {"id": "CVE-2021-23337", "reason": "INEFFECTIVE_VULNERABILITY", "comment": "Templates unused."}
        ],
    },
    "excludes": {"scopes": [{"pattern": "test", "reason": "TEST_DEPENDENCY_OF"}]},
    "metadata": {"analyzer": "demo"},
}


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    structlog.reset_defaults()
    logging.getLogger().handlers.clear()


@pytest.fixture
def sample_data() -> dict:
    return copy.deepcopy(SAMPLE_RESULT)


@pytest.fixture
def sample_report(sample_data):
    from result_workbench.report_reader import report_from_dict

    return report_from_dict(sample_data)


@pytest.fixture
def sample_index(sample_report):
    from result_workbench.result_index import ResultIndex

    return ResultIndex.build(sample_report)


@pytest.fixture
def result_file(tmp_path: Path, sample_data) -> Path:
    path = tmp_path / "result.json"
    path.write_text(json.dumps(sample_data))
    return path
