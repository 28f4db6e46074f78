"""
Tests for the project catalog.
"""
import asyncio

import pytest

from conftest import FakeRemoteService, Recorder, make_project
from planboard.catalog import ProjectCatalog
from planboard.events import CATALOG_FAILED
from planboard.schema import ProjectDraft, ValidationError


def _catalog(*projects):
    service = FakeRemoteService(*projects)
    catalog = ProjectCatalog(service)
    return service, catalog, Recorder(catalog.events, CATALOG_FAILED)


def test_refresh_lists_projects():
    service, catalog, _ = _catalog(make_project(project_id=1), make_project(project_id=2, title="Garden"))
    seen = []
    catalog.subscribe(lambda state: seen.append(state.loading))

    assert asyncio.run(catalog.refresh())

    assert [p.id for p in catalog.projects] == [1, 2]
    assert seen == [True, False]


def test_refresh_failure_keeps_list(service_error):
    service, catalog, recorder = _catalog(make_project())
    asyncio.run(catalog.refresh())
    service.fail["list_projects"] = service_error

    assert not asyncio.run(catalog.refresh())

    assert len(catalog.projects) == 1
    assert not catalog.state.loading
    assert recorder.of(CATALOG_FAILED) == [{"operation": "refresh", "error": service_error}]


def test_create_sends_normalized_draft_then_refreshes():
    service, catalog, _ = _catalog()
    project = asyncio.run(catalog.create(ProjectDraft(title=" Robot ", goal="Build a robot arm")))

    assert project.title == "Robot"
    sent = service.args_of("create_project")[0][0]
    assert sent == ProjectDraft(title="Robot", goal="Build a robot arm")
    assert [c[0] for c in service.calls] == ["create_project", "list_projects"]
    assert [p.id for p in catalog.projects] == [project.id]


def test_create_invalid_draft_sends_nothing():
    service, catalog, _ = _catalog()
    with pytest.raises(ValidationError):
        asyncio.run(catalog.create(ProjectDraft(title="Robot", goal="short")))
    assert service.calls == []


def test_create_failure(service_error):
    service, catalog, recorder = _catalog()
    service.fail["create_project"] = service_error

    assert asyncio.run(catalog.create(ProjectDraft(title="Robot", goal="Build a robot arm"))) is None
    assert service.count("list_projects") == 0
    assert recorder.of(CATALOG_FAILED)[0]["operation"] == "create"


def test_delete_then_refresh():
    service, catalog, _ = _catalog(make_project(project_id=1), make_project(project_id=2))
    assert asyncio.run(catalog.delete(1))
    assert [p.id for p in catalog.projects] == [2]


def test_delete_unknown_project():
    service, catalog, recorder = _catalog()
    assert not asyncio.run(catalog.delete(42))
    assert recorder.of(CATALOG_FAILED)[0]["operation"] == "delete"
    assert service.count("list_projects") == 0
