"""LEED points on tasks: population, project sync, seeding and API."""

from flask import Flask

from buildtrack.core.leed_catalog import DEFAULT_LEED_CATALOG
from buildtrack.core.phase_catalog import DEFAULT_CATALOG, PhaseCatalog
from buildtrack.models import db
from buildtrack.models.activity import Activity
from buildtrack.models.project import Task
from buildtrack.services import leed_points, project_service

BASE = "/api/v1"


# ═════════════════════════════════════════════════════════════════════════════
# Points population
# ═════════════════════════════════════════════════════════════════════════════


class TestPopulateTaskPoints:
    def test_completed_task_earns_full_score(self, project, make_task):
        task = make_task(project, status="completed", leed_subcategory_id="EAc2")

        assert leed_points.populate_task_leed_points(task) is True
        assert (task.leed_points_possible, task.leed_points_achieved) == (18, 18)

    def test_open_task_only_gets_possible_points(self, project, make_task):
        task = make_task(project, status="in_progress", leed_subcategory_id="WEc3")

        leed_points.populate_task_leed_points(task)

        assert (task.leed_points_possible, task.leed_points_achieved) == (6, None)

    def test_recorded_points_are_kept(self, project, make_task):
        task = make_task(project, status="completed", leed_subcategory_id="EAc2", leed_points_achieved=0)

        leed_points.populate_task_leed_points(task)

        assert (task.leed_points_possible, task.leed_points_achieved) == (18, 0)

    def test_unlinked_or_unknown_task_untouched(self, project, make_task):
        plain = make_task(project, status="completed")
        unknown = make_task(project, status="completed", leed_subcategory_id="EAc99")

        assert leed_points.populate_task_leed_points(plain) is False
        assert leed_points.populate_task_leed_points(unknown) is False
        assert unknown.leed_points_possible is None


# ═════════════════════════════════════════════════════════════════════════════
# Project sync and summary
# ═════════════════════════════════════════════════════════════════════════════


class TestSyncTaskLeedPoints:
    def test_sync_counts_catalogued_tasks(self, project, make_task):
        done = make_task(project, status="completed", leed_subcategory_id="MRc1")
        open_ = make_task(project, leed_subcategory_id="SSp1")
        make_task(project, leed_subcategory_id="XXc1")
        plain = make_task(project, status="completed")

        assert leed_points.sync_task_leed_points(project.id) == 2
        db.session.commit()

        assert (db.session.get(Task, done.id).leed_points_achieved) == 5
        assert db.session.get(Task, open_.id).leed_points_possible == 0
        assert db.session.get(Task, plain.id).leed_points_possible is None

    def test_sync_only_touches_own_project(self, make_project, make_task):
        mine, other = make_project(name="Mine"), make_project(name="Other")
        foreign = make_task(other, status="completed", leed_subcategory_id="EAc5")

        assert leed_points.sync_task_leed_points(mine.id) == 0
        assert db.session.get(Task, foreign.id).leed_points_possible is None

    def test_summary_groups_by_category(self, project, make_task):
        make_task(project, status="completed", leed_subcategory_id="EAc5")
        make_task(project, leed_subcategory_id="EAc2")
        make_task(project, status="completed", leed_subcategory_id="WEc1")
        leed_points.sync_task_leed_points(project.id)

        summary = leed_points.leed_points_summary(project.id)

        assert summary["points_possible"] == 25
        assert summary["points_achieved"] == 7
        assert summary["categories"]["Energy and Atmosphere"] == {"possible": 23, "achieved": 5, "tasks": 2}


# ═════════════════════════════════════════════════════════════════════════════
# Seeding and catalog wiring
# ═════════════════════════════════════════════════════════════════════════════


class TestSeedLeedTasks:
    def test_seed_category_once(self, project):
        created = leed_points.seed_leed_tasks(project, phases=DEFAULT_CATALOG, category_ids=["EA"])
        db.session.commit()

        assert len(created) == 10
        commissioning = next(t for t in created if t.leed_subcategory_id == "EAc1")
        assert commissioning.title == "EAc1: Enhanced Commissioning"
        assert (commissioning.phase, commissioning.priority) == ("execution", "high")
        assert commissioning.leed_points_possible == 6

        assert leed_points.seed_leed_tasks(project, category_ids=["EA"]) == []

    def test_uncatalogued_phase_falls_back_to_current(self, make_project):
        phases = PhaseCatalog.from_weights({"plan": 30, "build": 70})
        project = make_project(current_phase="plan")

        created = leed_points.seed_leed_tasks(project, phases=phases, category_ids=["IP"])

        assert [t.phase for t in created] == ["plan"]


def test_init_catalog_from_csv(tmp_path):
    export = tmp_path / "subcategories.csv"
    export.write_text(
        "certification,category id,category,subcategory id,subcategory,max score,version\n"
        "Homes,EA,Energy and Atmosphere,EAc9,Home Energy,12,v4.1\n",
        encoding="utf-8",
    )
    app = Flask(__name__)
    app.config["LEED_SUBCATEGORIES_CSV"] = str(export)

    catalog = leed_points.init_leed_catalog(app)

    assert len(catalog) == 1
    with app.app_context():
        assert leed_points.get_leed_catalog().get("EAc9").max_score == 12


def test_default_catalog_when_unconfigured():
    assert leed_points.get_leed_catalog() is DEFAULT_LEED_CATALOG


# ═════════════════════════════════════════════════════════════════════════════
# Task service integration
# ═════════════════════════════════════════════════════════════════════════════


class TestTaskServiceLeedFields:
    def test_create_completed_linked_task(self, project):
        task, err = project_service.create_task(
            project=project,
            data={"title": "Solar array", "status": "completed", "leed_subcategory_id": "EAc5"},
            catalog=DEFAULT_CATALOG,
        )
        assert err is None
        assert (task.leed_points_possible, task.leed_points_achieved) == (5, 5)

    def test_create_rejects_unknown_subcategory(self, project):
        task, err = project_service.create_task(
            project=project, data={"title": "Mystery", "leed_subcategory_id": "ZZc1"}, catalog=DEFAULT_CATALOG,
        )
        assert task is None
        assert err == {"error": "Unknown LEED subcategory 'ZZc1'", "status": 400}

    def test_achieved_cannot_exceed_possible(self, project, make_task):
        task = make_task(project, leed_subcategory_id="SSc4")
        updated, err = project_service.update_task(
            task=task, data={"leed_points_achieved": 4}, catalog=DEFAULT_CATALOG,
        )
        assert updated is None
        assert "cannot exceed 3" in err["error"]
        db.session.rollback()

    def test_relinking_resets_points(self, project, make_task):
        task = make_task(project, status="completed", leed_subcategory_id="SSc4", leed_points_achieved=2)
        updated, err = project_service.update_task(
            task=task, data={"leed_subcategory_id": "IEQc2"}, catalog=DEFAULT_CATALOG,
        )
        assert err is None
        assert (updated.leed_points_possible, updated.leed_points_achieved) == (3, 3)

    def test_completing_linked_task_credits_points(self, project, make_task):
        task = make_task(project, status="in_progress", leed_subcategory_id="LTc4")
        project_service.set_task_status(task=task, new_status="completed")
        assert task.leed_points_achieved == 5


# ═════════════════════════════════════════════════════════════════════════════
# API
# ═════════════════════════════════════════════════════════════════════════════


class TestLeedApi:
    def _project(self, client):
        res = client.post(f"{BASE}/projects", json={"name": "Green Tower", "status": "active"})
        return res.get_json()

    def test_seed_complete_and_sync(self, client):
        project = self._project(client)
        res = client.post(f"{BASE}/projects/{project['id']}/leed/tasks", json={"categories": ["IP", "RP"]})
        assert res.status_code == 201
        body = res.get_json()
        assert body["tasks_created"] == 2

        task_id = next(t["id"] for t in body["items"] if t["leed_subcategory_id"] == "RPc1")
        client.patch(f"{BASE}/tasks/{task_id}/status", json={"status": "completed"})

        res = client.post(f"{BASE}/projects/{project['id']}/leed/sync", json={})
        assert res.status_code == 200
        body = res.get_json()
        assert body["tasks_synced"] == 2
        assert (body["points_possible"], body["points_achieved"]) == (5, 4)
        assert Activity.query.filter_by(activity_type="leed_points_synced").count() == 1

    def test_seed_rejects_non_list_categories(self, client):
        project = self._project(client)
        res = client.post(f"{BASE}/projects/{project['id']}/leed/tasks", json={"categories": "EA"})
        assert res.status_code == 400

    def test_summary_for_missing_project(self, client):
        assert client.get(f"{BASE}/projects/999/leed").status_code == 404

    def test_subcategory_catalogue(self, client):
        body = client.get(f"{BASE}/leed/subcategories?category=EA").get_json()
        assert (body["total"], body["max_points"]) == (10, 33)
        assert client.get(f"{BASE}/leed/subcategories/EAc2").get_json()["max_score"] == 18
        assert client.get(f"{BASE}/leed/subcategories/EAc99").status_code == 404
