from typing import Dict

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.dialects import postgresql
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.schedules import swap_service
from app.auth.schemas import CurrentUser
from app.core.enums import UserRole
from app.core.models import ScheduleEntry, SwapRequest

BASE = "/api/v1/schedules/swap-requests"


async def _teacher_of(db: AsyncSession, entry_id: int) -> int:
    result = await db.execute(select(ScheduleEntry.teacher_user_id).where(ScheduleEntry.id == entry_id))
    return result.scalar_one()


async def _status_of(db: AsyncSession, request_id: int) -> str:
    result = await db.execute(select(SwapRequest.status).where(SwapRequest.id == request_id))
    return result.scalar_one()


async def _create(client: AsyncClient, headers: Dict[str, str], original: int, target: int, reason: str = "Clash") -> int:
    resp = await client.post(
        BASE,
        json={"original_entry_id": original, "target_entry_id": target, "reason": reason},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


# ----- create -----
@pytest.mark.asyncio
async def test_create_swap_request_pending(client: AsyncClient, school, auth_headers):
    resp = await client.post(
        BASE,
        json={"original_entry_id": school.entry_a, "target_entry_id": school.entry_b, "reason": "  Clash  "},
        headers=auth_headers(school.head1),
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "pending"
    assert body["requesting_user_id"] == school.head1
    assert body["reason"] == "Clash"
    assert body["approving_head1_user_id"] is None
    assert body["final_approver_user_id"] is None


@pytest.mark.asyncio
async def test_create_swap_request_teacher_forbidden(client: AsyncClient, school, auth_headers):
    resp = await client.post(
        BASE,
        json={"original_entry_id": school.entry_a, "target_entry_id": school.entry_b},
        headers=auth_headers(school.t10),
    )
    assert resp.status_code == 403
    assert resp.json()["msg"].startswith("Forbidden")


@pytest.mark.asyncio
async def test_create_swap_request_requires_token(client: AsyncClient, school, auth_headers):
    resp = await client.post(BASE, json={"original_entry_id": school.entry_a, "target_entry_id": school.entry_b})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_create_swap_request_same_entry(client: AsyncClient, school, auth_headers):
    resp = await client.post(
        BASE,
        json={"original_entry_id": school.entry_a, "target_entry_id": school.entry_a},
        headers=auth_headers(school.admin),
    )
    assert resp.status_code == 400
    assert resp.json()["msg"] == "Cannot swap an entry with itself"


@pytest.mark.asyncio
async def test_create_swap_request_missing_entry(client: AsyncClient, school, auth_headers):
    resp = await client.post(
        BASE,
        json={"original_entry_id": school.entry_a, "target_entry_id": 999},
        headers=auth_headers(school.admin),
    )
    assert resp.status_code == 404
    assert resp.json()["msg"] == "One or both schedule entries not found"


@pytest.mark.asyncio
async def test_create_swap_request_different_time_slot(client: AsyncClient, school, auth_headers):
    resp = await client.post(
        BASE,
        json={"original_entry_id": school.entry_b, "target_entry_id": school.entry_d},
        headers=auth_headers(school.admin),
    )
    assert resp.status_code == 400
    assert "same time slot" in resp.json()["msg"]


@pytest.mark.asyncio
async def test_create_swap_request_missing_field(client: AsyncClient, school, auth_headers):
    resp = await client.post(BASE, json={"original_entry_id": school.entry_a}, headers=auth_headers(school.admin))
    assert resp.status_code == 400
    assert "target_entry_id" in resp.json()["msg"]


# ----- approval workflow -----
@pytest.mark.asyncio
async def test_same_department_first_step_completes_swap(client: AsyncClient, db_session: AsyncSession, school, auth_headers):
    request_id = await _create(client, auth_headers(school.head1), school.entry_a, school.entry_c)

    resp = await client.put(f"{BASE}/{request_id}/approve-first", headers=auth_headers(school.head1))

    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["status"] == "approved"
    assert body["approving_head1_user_id"] == school.head1
    assert body["final_approver_user_id"] == school.head1
    assert body["approving_head1_at"] is not None
    assert body["final_approved_at"] is not None
    assert await _teacher_of(db_session, school.entry_a) == school.t11
    assert await _teacher_of(db_session, school.entry_c) == school.t10


@pytest.mark.asyncio
async def test_cross_department_two_step_approval(client: AsyncClient, db_session: AsyncSession, school, auth_headers):
    request_id = await _create(client, auth_headers(school.head1), school.entry_a, school.entry_b)

    first = await client.put(f"{BASE}/{request_id}/approve-first", headers=auth_headers(school.head1))
    assert first.status_code == 200
    assert first.json()["status"] == "approved_by_head1"
    assert first.json()["final_approver_user_id"] is None
    assert await _teacher_of(db_session, school.entry_a) == school.t10
    assert await _teacher_of(db_session, school.entry_b) == school.t20

    # Head of the first approving department cannot also give final approval
    same_head = await client.put(f"{BASE}/{request_id}/approve-final", headers=auth_headers(school.head1))
    assert same_head.status_code == 403
    assert await _status_of(db_session, request_id) == "approved_by_head1"

    final = await client.put(f"{BASE}/{request_id}/approve-final", headers=auth_headers(school.head2))
    assert final.status_code == 200, final.text
    body = final.json()
    assert body["status"] == "approved"
    assert body["approving_head1_user_id"] == school.head1
    assert body["final_approver_user_id"] == school.head2
    assert await _teacher_of(db_session, school.entry_a) == school.t20
    assert await _teacher_of(db_session, school.entry_b) == school.t10


@pytest.mark.asyncio
async def test_first_step_by_target_department_head(client: AsyncClient, school, auth_headers):
    request_id = await _create(client, auth_headers(school.head1), school.entry_a, school.entry_b)

    first = await client.put(f"{BASE}/{request_id}/approve-first", headers=auth_headers(school.head2))
    assert first.json()["status"] == "approved_by_head1"

    final = await client.put(f"{BASE}/{request_id}/approve-final", headers=auth_headers(school.head1))
    assert final.status_code == 200
    assert final.json()["status"] == "approved"


@pytest.mark.asyncio
async def test_first_step_twice_by_same_head(client: AsyncClient, school, auth_headers):
    request_id = await _create(client, auth_headers(school.head1), school.entry_a, school.entry_b)
    await client.put(f"{BASE}/{request_id}/approve-first", headers=auth_headers(school.head1))

    again = await client.put(f"{BASE}/{request_id}/approve-first", headers=auth_headers(school.head1))

    assert again.status_code == 400
    assert again.json()["msg"] == "You have already approved this step."


@pytest.mark.asyncio
async def test_first_step_again_after_fast_path_reports_status(client: AsyncClient, db_session: AsyncSession, school, auth_headers):
    request_id = await _create(client, auth_headers(school.head1), school.entry_a, school.entry_c)
    done = await client.put(f"{BASE}/{request_id}/approve-first", headers=auth_headers(school.head1))
    assert done.json()["status"] == "approved"

    again = await client.put(f"{BASE}/{request_id}/approve-first", headers=auth_headers(school.head1))

    assert again.status_code == 400
    assert again.json()["msg"] == "Request is already approved"
    assert await _teacher_of(db_session, school.entry_a) == school.t11


@pytest.mark.asyncio
async def test_first_step_again_after_final_reports_status(client: AsyncClient, school, auth_headers):
    request_id = await _create(client, auth_headers(school.head1), school.entry_a, school.entry_b)
    await client.put(f"{BASE}/{request_id}/approve-first", headers=auth_headers(school.head1))
    await client.put(f"{BASE}/{request_id}/approve-final", headers=auth_headers(school.head2))

    again = await client.put(f"{BASE}/{request_id}/approve-first", headers=auth_headers(school.head1))

    assert again.status_code == 400
    assert again.json()["msg"] == "Request is already approved"


@pytest.mark.asyncio
async def test_first_step_by_second_head_after_first(client: AsyncClient, school, auth_headers):
    request_id = await _create(client, auth_headers(school.head1), school.entry_a, school.entry_b)
    await client.put(f"{BASE}/{request_id}/approve-first", headers=auth_headers(school.head1))

    resp = await client.put(f"{BASE}/{request_id}/approve-first", headers=auth_headers(school.head2))

    assert resp.status_code == 400
    assert resp.json()["msg"] == "Request status is 'approved_by_head1', cannot perform first step approval."


@pytest.mark.asyncio
async def test_first_step_uninvolved_head_forbidden(client: AsyncClient, db_session: AsyncSession, school, auth_headers):
    request_id = await _create(client, auth_headers(school.head1), school.entry_a, school.entry_b)

    resp = await client.put(f"{BASE}/{request_id}/approve-first", headers=auth_headers(school.head_no_dept))

    assert resp.status_code == 403
    assert await _status_of(db_session, request_id) == "pending"


@pytest.mark.asyncio
async def test_first_step_admin_not_allowed(client: AsyncClient, school, auth_headers):
    request_id = await _create(client, auth_headers(school.head1), school.entry_a, school.entry_b)

    resp = await client.put(f"{BASE}/{request_id}/approve-first", headers=auth_headers(school.admin))

    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_final_from_pending_by_head_requires_first_step(client: AsyncClient, school, auth_headers):
    request_id = await _create(client, auth_headers(school.head1), school.entry_a, school.entry_b)

    resp = await client.put(f"{BASE}/{request_id}/approve-final", headers=auth_headers(school.head2))

    assert resp.status_code == 400
    assert resp.json()["msg"] == "Request status is 'pending', cannot perform final approval."


@pytest.mark.asyncio
async def test_admin_override_from_pending(client: AsyncClient, db_session: AsyncSession, school, auth_headers):
    request_id = await _create(client, auth_headers(school.head1), school.entry_a, school.entry_b)

    resp = await client.put(f"{BASE}/{request_id}/approve-final", headers=auth_headers(school.assistant))

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "approved"
    assert body["approving_head1_user_id"] is None
    assert body["final_approver_user_id"] == school.assistant
    assert await _teacher_of(db_session, school.entry_a) == school.t20


@pytest.mark.asyncio
async def test_terminal_request_is_not_applied_twice(client: AsyncClient, db_session: AsyncSession, school, auth_headers):
    request_id = await _create(client, auth_headers(school.head1), school.entry_a, school.entry_b)
    first = await client.put(f"{BASE}/{request_id}/approve-final", headers=auth_headers(school.admin))
    assert first.status_code == 200

    # Sequential race: a second approver arrives after the request already completed
    second = await client.put(f"{BASE}/{request_id}/approve-final", headers=auth_headers(school.assistant))
    assert second.status_code == 400
    assert second.json()["msg"] == "Request is already approved"

    reject = await client.put(
        f"{BASE}/{request_id}/reject",
        json={"rejection_reason": "Too late"},
        headers=auth_headers(school.admin),
    )
    assert reject.status_code == 400
    assert reject.json()["msg"] == "Request is already approved"

    assert await _teacher_of(db_session, school.entry_a) == school.t20
    assert await _teacher_of(db_session, school.entry_b) == school.t10


@pytest.mark.asyncio
async def test_two_approved_swaps_restore_original_assignment(client: AsyncClient, db_session: AsyncSession, school, auth_headers):
    for _ in range(2):
        request_id = await _create(client, auth_headers(school.head1), school.entry_a, school.entry_b)
        resp = await client.put(f"{BASE}/{request_id}/approve-final", headers=auth_headers(school.admin))
        assert resp.status_code == 200

    assert await _teacher_of(db_session, school.entry_a) == school.t10
    assert await _teacher_of(db_session, school.entry_b) == school.t20


@pytest.mark.asyncio
async def test_unknown_request(client: AsyncClient, school, auth_headers):
    resp = await client.put(f"{BASE}/999/approve-final", headers=auth_headers(school.admin))
    assert resp.status_code == 404
    assert resp.json()["msg"] == "Swap request not found"


@pytest.mark.asyncio
async def test_failed_swap_rolls_back(monkeypatch, client: AsyncClient, db_session: AsyncSession, school, auth_headers):
    request_id = await _create(client, auth_headers(school.head1), school.entry_a, school.entry_b)

    async def _broken_swap(db, orig, target):
        orig.teacher_user_id = target.teacher_user_id
        await db.flush()
        raise RuntimeError("connection lost")

    monkeypatch.setattr(swap_service, "_swap_teachers", _broken_swap)
    admin = CurrentUser(id=school.admin, role=UserRole.SYSTEM_ADMIN, department_id=None)

    with pytest.raises(RuntimeError):
        await swap_service.approve_final(db_session, admin, request_id)

    assert await _status_of(db_session, request_id) == "pending"
    assert await _teacher_of(db_session, school.entry_a) == school.t10
    assert await _teacher_of(db_session, school.entry_b) == school.t20


# ----- reject -----
@pytest.mark.asyncio
async def test_reject_by_involved_head(client: AsyncClient, db_session: AsyncSession, school, auth_headers):
    request_id = await _create(client, auth_headers(school.head1), school.entry_a, school.entry_b)

    resp = await client.put(
        f"{BASE}/{request_id}/reject",
        json={"rejection_reason": "  Exam week  "},
        headers=auth_headers(school.head2),
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "rejected"
    assert body["rejection_reason"] == "Exam week"
    assert body["final_approver_user_id"] == school.head2
    assert await _teacher_of(db_session, school.entry_a) == school.t10

    approve = await client.put(f"{BASE}/{request_id}/approve-first", headers=auth_headers(school.head1))
    assert approve.status_code == 400
    assert approve.json()["msg"] == "Request is already rejected"


@pytest.mark.asyncio
async def test_reject_after_first_step(client: AsyncClient, school, auth_headers):
    request_id = await _create(client, auth_headers(school.head1), school.entry_a, school.entry_b)
    await client.put(f"{BASE}/{request_id}/approve-first", headers=auth_headers(school.head1))

    resp = await client.put(
        f"{BASE}/{request_id}/reject",
        json={"rejection_reason": "No cover"},
        headers=auth_headers(school.head2),
    )

    assert resp.status_code == 200
    assert resp.json()["status"] == "rejected"


@pytest.mark.parametrize("payload", [{}, {"rejection_reason": ""}, {"rejection_reason": "   "}])
@pytest.mark.asyncio
async def test_reject_requires_reason(client: AsyncClient, db_session: AsyncSession, school, auth_headers, payload):
    request_id = await _create(client, auth_headers(school.head1), school.entry_a, school.entry_b)

    resp = await client.put(f"{BASE}/{request_id}/reject", json=payload, headers=auth_headers(school.admin))

    assert resp.status_code == 400
    assert await _status_of(db_session, request_id) == "pending"


@pytest.mark.asyncio
async def test_reject_uninvolved_head_forbidden(client: AsyncClient, school, auth_headers):
    request_id = await _create(client, auth_headers(school.head1), school.entry_a, school.entry_b)

    resp = await client.put(
        f"{BASE}/{request_id}/reject",
        json={"rejection_reason": "Not mine"},
        headers=auth_headers(school.head_no_dept),
    )

    assert resp.status_code == 403


# ----- view / list -----
@pytest.mark.asyncio
async def test_get_swap_request_detail(client: AsyncClient, school, auth_headers):
    request_id = await _create(client, auth_headers(school.head1), school.entry_a, school.entry_b)

    resp = await client.get(f"{BASE}/{request_id}", headers=auth_headers(school.head2))

    assert resp.status_code == 200
    body = resp.json()
    assert body["orig_teacher_id"] == school.t10
    assert body["orig_teacher_dept_id"] == 1
    assert body["target_teacher_id"] == school.t20
    assert body["target_teacher_dept_id"] == 2
    assert body["time_slot_id"] == school.slot3
    assert body["start_time"] == "10:00"


@pytest.mark.asyncio
async def test_get_swap_request_unrelated_head_forbidden(client: AsyncClient, school, auth_headers):
    request_id = await _create(client, auth_headers(school.head1), school.entry_a, school.entry_b)

    resp = await client.get(f"{BASE}/{request_id}", headers=auth_headers(school.head_no_dept))

    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_get_swap_request_visible_to_requesting_head(client: AsyncClient, school, auth_headers):
    request_id = await _create(client, auth_headers(school.head_no_dept), school.entry_a, school.entry_b)

    resp = await client.get(f"{BASE}/{request_id}", headers=auth_headers(school.head_no_dept))

    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_list_swap_requests_scoped_for_heads(client: AsyncClient, school, auth_headers):
    cross = await _create(client, auth_headers(school.admin), school.entry_a, school.entry_b)
    same = await _create(client, auth_headers(school.admin), school.entry_a, school.entry_c)

    head2 = await client.get(BASE, headers=auth_headers(school.head2))
    assert [r["id"] for r in head2.json()] == [cross]

    head1 = await client.get(BASE, headers=auth_headers(school.head1))
    assert sorted(r["id"] for r in head1.json()) == sorted([cross, same])

    outsider = await client.get(BASE, headers=auth_headers(school.head_no_dept))
    assert outsider.status_code == 200
    assert outsider.json() == []


@pytest.mark.asyncio
async def test_list_swap_requests_filters(client: AsyncClient, school, auth_headers):
    cross = await _create(client, auth_headers(school.admin), school.entry_a, school.entry_b)
    same = await _create(client, auth_headers(school.admin), school.entry_a, school.entry_c)
    await client.put(f"{BASE}/{same}/approve-first", headers=auth_headers(school.head1))

    pending = await client.get(BASE, params={"status": "pending"}, headers=auth_headers(school.admin))
    assert [r["id"] for r in pending.json()] == [cross]

    science = await client.get(BASE, params={"departmentId": 2}, headers=auth_headers(school.admin))
    assert [r["id"] for r in science.json()] == [cross]

    bad = await client.get(BASE, params={"status": "unknown"}, headers=auth_headers(school.admin))
    assert bad.status_code == 400


@pytest.mark.asyncio
async def test_list_swap_requests_supervisor_forbidden(client: AsyncClient, school, auth_headers):
    resp = await client.get(BASE, headers=auth_headers(school.supervisor))
    assert resp.status_code == 403


# ----- row locking -----
def _pg_sql(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect()))


def test_locked_statements_compile_to_for_update():
    swap = SwapRequest(id=1, original_entry_id=1, target_entry_id=2)

    assert "FOR UPDATE" in _pg_sql(swap_service.locked_swap_request_stmt(1))
    assert "FOR UPDATE" in _pg_sql(swap_service.swap_entries_stmt(swap, lock=True))
    assert "FOR UPDATE" not in _pg_sql(swap_service.swap_entries_stmt(swap))


APPROVERS = {
    "approve_first_step": CurrentUser(id=100, role=UserRole.DEPARTMENT_HEAD, department_id=1),
    "approve_final": CurrentUser(id=1, role=UserRole.SYSTEM_ADMIN, department_id=None),
}


@pytest.mark.parametrize("action", sorted(APPROVERS))
@pytest.mark.asyncio
async def test_approvals_lock_request_and_entries(monkeypatch, db_session: AsyncSession, client: AsyncClient, school, auth_headers, action):
    request_id = await _create(client, auth_headers(school.head1), school.entry_a, school.entry_b)
    executed = []

    def _recording(builder):
        def _wrapped(*args, **kwargs):
            stmt = builder(*args, **kwargs)
            executed.append(stmt)
            return stmt
        return _wrapped

    monkeypatch.setattr(swap_service, "locked_swap_request_stmt", _recording(swap_service.locked_swap_request_stmt))
    monkeypatch.setattr(swap_service, "swap_entries_stmt", _recording(swap_service.swap_entries_stmt))

    await getattr(swap_service, action)(db_session, APPROVERS[action], request_id)

    assert len(executed) == 2
    assert all("FOR UPDATE" in _pg_sql(stmt) for stmt in executed)


@pytest.mark.asyncio
async def test_reject_locks_request(monkeypatch, db_session: AsyncSession, client: AsyncClient, school, auth_headers):
    request_id = await _create(client, auth_headers(school.head1), school.entry_a, school.entry_b)
    executed = []
    builder = swap_service.locked_swap_request_stmt

    def _recording(request_id):
        stmt = builder(request_id)
        executed.append(stmt)
        return stmt

    monkeypatch.setattr(swap_service, "locked_swap_request_stmt", _recording)
    admin = CurrentUser(id=school.admin, role=UserRole.SYSTEM_ADMIN, department_id=None)

    await swap_service.reject_swap_request(db_session, admin, request_id, "Exam week")

    assert len(executed) == 1
    assert "FOR UPDATE" in _pg_sql(executed[0])
