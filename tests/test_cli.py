"""
Tests for the command-line entry point, run against the in-memory service.
"""
import sys

import pytest

import planboard.cli as cli
import planboard.config as config_module
from conftest import FakeRemoteService, make_project, make_task
from planboard.app import Dashboard
from planboard.schema import TaskStatus, TimelineUpdate


@pytest.fixture
def service(monkeypatch, tmp_path):
    for name in ("PLANBOARD_API_URL", "PLANBOARD_LOG_LEVEL", "PLANBOARD_CONFIG"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config_module, "CONFIG_PATH", tmp_path / "config.yaml")
    monkeypatch.setattr(cli, "setup_logging", lambda level, stream=None: None)

    fake = FakeRemoteService(make_project(
        make_task(1, title="Order parts"),
        make_task(2, title="Wire motors", status=TaskStatus.IN_PROGRESS),
    ))
    monkeypatch.setattr(cli, "Dashboard", lambda cfg: Dashboard(cfg, service=fake))
    return fake


def test_projects(service, capsys):
    assert cli.main(["projects"]) == 0
    assert "Build robot" in capsys.readouterr().out


def test_projects_empty(service, capsys):
    service.projects.clear()
    assert cli.main(["projects"]) == 0
    assert "No projects." in capsys.readouterr().out


def test_show_board(service, capsys):
    assert cli.main(["show", "1"]) == 0
    out = capsys.readouterr().out
    assert "── PENDING (1)" in out
    assert "── IN PROGRESS (1)" in out
    assert "#2" in out and "Wire motors" in out


def test_show_missing_project(service, capsys):
    assert cli.main(["show", "9"]) == 1
    assert "Project 9" in capsys.readouterr().err


def test_move_commits_and_reports_timeline(service, capsys):
    service.timeline_updates[1] = TimelineUpdate(
        performance_ratio=1.5, new_deadline="2025-03-01", remaining_days=12,
        reasoning="Slower than planned.",
    )
    assert cli.main(["move", "1", "1", "completed"]) == 0
    captured = capsys.readouterr()
    assert "Task 1: committed (now completed)" in captured.out
    assert "New deadline: 2025-03-01" in captured.err
    assert service.args_of("update_task_status") == [(1, TaskStatus.COMPLETED)]


def test_move_accepts_hyphenated_status(service):
    assert cli.main(["move", "1", "1", "in-progress"]) == 0
    assert service.projects[1].find_task(1).status == TaskStatus.IN_PROGRESS


def test_move_rejected_rolls_back(service, service_error, capsys):
    service.fail["update_task_status"] = service_error
    assert cli.main(["move", "1", "1", "blocked"]) == 1
    captured = capsys.readouterr()
    assert "rolled_back (now pending)" in captured.out
    assert "update failed" in captured.err


def test_move_unknown_task(service, capsys):
    assert cli.main(["move", "1", "77", "completed"]) == 1
    assert "not on project 1" in capsys.readouterr().err


def test_move_bad_status_exits_with_usage_error(service):
    with pytest.raises(SystemExit) as exc:
        cli.main(["move", "1", "1", "archived"])
    assert exc.value.code == 2


def test_new_project(service, capsys):
    assert cli.main(["new", "--title", "Garden", "--goal", "Plant a vegetable garden"]) == 0
    assert "Created project 2: Garden" in capsys.readouterr().out


def test_new_project_invalid(service, capsys):
    assert cli.main(["new", "--title", "Garden", "--goal", "short"]) == 2
    assert "Invalid input" in capsys.readouterr().err
    assert service.count("create_project") == 0


def test_delete(service):
    assert cli.main(["delete", "1"]) == 0
    assert service.projects == {}
    assert cli.main(["delete", "1"]) == 1


def test_chat_seeds_and_prints(service, capsys):
    assert cli.main(["chat", "1", "1"]) == 0
    out = capsys.readouterr().out
    assert "[you]" in out and "Order parts" in out
    assert "[assistant]" in out


def test_chat_follow_up(service, capsys):
    assert cli.main(["chat", "1", "1", "Which supplier?"]) == 0
    assert "Here is how to proceed with: Which supplier?" in capsys.readouterr().out
    assert service.count("send_message") == 2


def test_chat_unknown_task(service, capsys):
    assert cli.main(["chat", "1", "42"]) == 1
    assert "not on the open board" in capsys.readouterr().err


def test_clear(service, capsys):
    cli.main(["chat", "1", "2", "first question"])
    capsys.readouterr()

    assert cli.main(["clear", "1", "2"]) == 0
    captured = capsys.readouterr()
    assert "Conversation cleared" in captured.err
    assert len(service.conversations[2]) == 2


def test_bad_config_file(service, tmp_path, capsys):
    path = tmp_path / "bad.yaml"
    path.write_text("api_url: nowhere\n")
    assert cli.main(["--config", str(path), "projects"]) == 2
    assert "Config error" in capsys.readouterr().err


def test_logs_go_to_stderr(service, monkeypatch, capsys):
    calls = []
    monkeypatch.setattr(cli, "setup_logging", lambda level, stream=None: calls.append((level, stream)))

    assert cli.main(["-v", "projects"]) == 0

    assert calls == [("DEBUG", sys.stderr)]
