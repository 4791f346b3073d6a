from decimal import Decimal

from brokerage.models import AgentTier, TransactionStatus


def transaction_payload(**overrides):
    """Valid secondary-market sale, as the API accepts it."""
    payload = {
        "market_type": "secondary",
        "transaction_type": "sale",
        "transaction_date": "2026-10-05T10:00:00+00:00",
        "property_data": {
            "address": "12 Jalan Ampang, Kuala Lumpur",
            "property_type": "condominium",
            "bedrooms": 3,
            "bathrooms": 2,
            "area": 1200,
            "price": 625000,
        },
        "client_data": {
            "name": "Lee Mei Ling",
            "email": "meiling@gmail.com",
            "phone": "+60123456789",
            "type": "buyer",
            "source": "referral",
        },
        "is_co_broking": False,
        "commission_type": "percentage",
        "commission_value": "2.00",
        "commission_amount": "12500.00",
    }
    payload.update(overrides)
    return payload


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


class TestTransactionsApi:
    def test_agent_creates_and_submits(self, client, login, make_agent):
        agent = make_agent()
        login(agent)

        created = client.post("/api/transactions", json=transaction_payload())
        assert created.status_code == 201
        body = created.json()
        assert body["status"] == "draft"
        assert body["agent_id"] == agent.id

        submitted = client.post(f"/api/transactions/{body['id']}/submit")
        assert submitted.status_code == 200
        assert submitted.json()["status"] == "submitted"

    def test_primary_lease_submission_is_rejected(self, client, login, make_agent):
        login(make_agent())
        tx = client.post(
            "/api/transactions",
            json=transaction_payload(market_type="primary", transaction_type="lease"),
        ).json()

        response = client.post(f"/api/transactions/{tx['id']}/submit")

        assert response.status_code == 422
        body = response.json()
        assert body["error_type"] == "validation_error"
        assert "Primary market transactions must be of type 'sale'" in body["errors"]

    def test_full_approval_flow(self, client, login, admin, make_agent, make_transaction):
        upline = make_agent(AgentTier.TEAM_LEADER)
        agent = make_agent(AgentTier.SALES_LEADER, recruiter=upline)
        tx = make_transaction(agent, status=TransactionStatus.SUBMITTED)
        login(admin)

        assert client.post(f"/api/transactions/{tx.id}/review").json()["status"] == "under_review"

        response = client.post(f"/api/transactions/{tx.id}/approve", json={"notes": "OK"})
        assert response.status_code == 200
        result = response.json()
        assert Decimal(result["agent_share"]) == Decimal("10000.00")
        assert Decimal(result["company_share"]) == Decimal("2500.00")
        assert Decimal(result["total_bonus"]) == Decimal("125.00")
        assert Decimal(result["company_net_share"]) == Decimal("2375.00")
        assert len(result["entries"]) == 2

        again = client.post(f"/api/transactions/{tx.id}/approve")
        assert again.status_code == 409
        assert again.json()["error_type"] == "already_processed"

        ledger = client.get(f"/api/transactions/{tx.id}/ledger").json()
        assert [e["role"] for e in ledger] == ["own_commission", "leadership_bonus"]

        history = client.get(f"/api/transactions/{tx.id}/history").json()
        assert [h["to_status"] for h in history] == ["under_review", "approved"]

        completed = client.post(f"/api/transactions/{tx.id}/complete")
        assert completed.json()["status"] == "completed"

    def test_agent_cannot_approve(self, client, login, make_agent, make_transaction):
        agent = make_agent()
        tx = make_transaction(agent, status=TransactionStatus.UNDER_REVIEW)
        login(agent)

        assert client.post(f"/api/transactions/{tx.id}/approve").status_code == 403

    def test_invalid_transition_is_conflict(self, client, login, admin, make_agent, make_transaction):
        tx = make_transaction(make_agent(), status=TransactionStatus.DRAFT)
        login(admin)

        response = client.post(f"/api/transactions/{tx.id}/approve")

        assert response.status_code == 409
        assert response.json()["error_type"] == "invalid_transition"

    def test_cycle_is_data_integrity_error(self, client, login, db, admin, make_agent, make_transaction):
        a = make_agent(AgentTier.TEAM_LEADER)
        b = make_agent(AgentTier.TEAM_LEADER, recruiter=a)
        a.recruited_by_id = b.id
        db.commit()
        tx = make_transaction(a, status=TransactionStatus.UNDER_REVIEW)
        login(admin)

        response = client.post(f"/api/transactions/{tx.id}/approve")

        assert response.status_code == 500
        assert response.json()["data_integrity"] is True
        assert client.get(f"/api/transactions/{tx.id}").json()["status"] == "under_review"
        assert client.get(f"/api/transactions/{tx.id}/ledger").json() == []

    def test_reject_needs_reason(self, client, login, admin, make_agent, make_transaction):
        tx = make_transaction(make_agent(), status=TransactionStatus.UNDER_REVIEW)
        login(admin)

        assert client.post(f"/api/transactions/{tx.id}/reject", json={"reason": ""}).status_code == 422

        rejected = client.post(f"/api/transactions/{tx.id}/reject", json={"reason": "Duplicate listing"})
        assert rejected.json()["status"] == "rejected"

    def test_agents_only_see_their_own(self, client, login, make_agent, make_transaction):
        owner = make_agent()
        other = make_agent()
        tx = make_transaction(owner)
        make_transaction(other)
        login(other)

        assert client.get(f"/api/transactions/{tx.id}").status_code == 404
        listing = client.get("/api/transactions").json()
        assert listing["total"] == 1
        assert all(item["agent_id"] == other.id for item in listing["items"])

    def test_unknown_transaction(self, client, login, admin):
        login(admin)
        response = client.get("/api/transactions/999")
        assert response.status_code == 404
        assert response.json()["error_type"] == "not_found"


class TestAgentTiersApi:
    def test_list_tiers(self, client, login, make_agent):
        login(make_agent())
        tiers = client.get("/api/agent-tiers").json()
        assert [t["tier"] for t in tiers] == [
            "advisor", "sales_leader", "team_leader", "group_leader", "supreme_leader",
        ]
        assert tiers[0]["is_bonus_eligible"] is False

    def test_my_tier(self, client, login, make_agent):
        login(make_agent(AgentTier.TEAM_LEADER))
        me = client.get("/api/agent-tiers/me").json()
        assert me["agent_tier"] == "team_leader"
        assert me["next_tier"]["tier"] == "group_leader"

    def test_preview(self, client, login, make_agent):
        upline = make_agent(AgentTier.SUPREME_LEADER)
        login(make_agent(AgentTier.ADVISOR, recruiter=upline))

        preview = client.post("/api/agent-tiers/preview", json={"commission_amount": "5000.00"}).json()

        assert Decimal(preview["agent_share"]) == Decimal("3500.00")
        assert Decimal(preview["company_share"]) == Decimal("1500.00")
        assert [Decimal(b["amount"]) for b in preview["bonuses"]] == [Decimal("90.00")]

    def test_upline_chain_and_downline(self, client, login, admin, make_agent):
        top = make_agent(AgentTier.GROUP_LEADER)
        mid = make_agent(AgentTier.SALES_LEADER, recruiter=top)
        low = make_agent(recruiter=mid)
        login(admin)

        chain = client.get(f"/api/agent-tiers/{low.id}/upline-chain").json()
        assert [a["id"] for a in chain] == [mid.id, top.id]
        assert client.get(f"/api/agent-tiers/{low.id}/upline").json()["id"] == mid.id
        assert client.get(f"/api/agent-tiers/{top.id}/upline").json() is None
        assert [a["id"] for a in client.get(f"/api/agent-tiers/{top.id}/downline").json()] == [mid.id]

    def test_other_agents_graph_is_private(self, client, login, make_agent):
        a = make_agent()
        login(make_agent())
        assert client.get(f"/api/agent-tiers/{a.id}/upline-chain").status_code == 403

    def test_assign_recruiter(self, client, login, admin, make_agent):
        leader = make_agent(AgentTier.SALES_LEADER)
        recruit = make_agent()
        login(admin)

        response = client.put(f"/api/agent-tiers/{recruit.id}/recruiter", json={"recruiter_id": leader.id})
        assert response.status_code == 200
        assert response.json()["recruited_by_id"] == leader.id

        cycle = client.put(f"/api/agent-tiers/{leader.id}/recruiter", json={"recruiter_id": recruit.id})
        assert cycle.status_code == 500
        assert cycle.json()["error_type"] == "data_integrity"

    def test_promote_and_history(self, client, login, admin, make_agent):
        agent = make_agent()
        login(admin)

        response = client.post(
            f"/api/agent-tiers/{agent.id}/promote",
            json={"new_tier": "sales_leader", "reason": "Two closings this month"},
        )
        assert response.json()["agent_tier"] == "sales_leader"

        demote = client.post(
            f"/api/agent-tiers/{agent.id}/promote",
            json={"new_tier": "advisor", "reason": "Quiet month"},
        )
        assert demote.status_code == 422

        history = client.get(f"/api/agent-tiers/{agent.id}/history").json()
        assert [h["new_tier"] for h in history] == ["sales_leader"]

    def test_eligibility(self, client, login, make_agent):
        agent = make_agent()
        login(agent)

        result = client.get(f"/api/agent-tiers/{agent.id}/eligibility", params={"period": "2026-10"}).json()
        assert result["target_tier"] == "sales_leader"
        assert result["eligible"] is False

        bad = client.get(f"/api/agent-tiers/{agent.id}/eligibility", params={"period": "Oct"})
        assert bad.status_code == 422

    def test_my_leadership_bonuses(self, client, login, admin, make_agent, make_transaction):
        upline = make_agent(AgentTier.TEAM_LEADER)
        agent = make_agent(AgentTier.SALES_LEADER, recruiter=upline)
        tx = make_transaction(agent, status=TransactionStatus.UNDER_REVIEW)
        login(admin)
        client.post(f"/api/transactions/{tx.id}/approve")

        login(upline)
        summary = client.get("/api/agent-tiers/me/leadership-bonuses").json()

        assert summary["downline_count"] == 1
        assert summary["payment_count"] == 1
        assert Decimal(summary["total_bonus"]) == Decimal("125.00")
        assert summary["recent_payments"][0]["source_agent_id"] == agent.id


class TestDraftEditingApi:
    def test_owner_edits_draft_and_approval_uses_new_amount(
        self, client, login, admin, make_agent, make_transaction
    ):
        agent = make_agent(AgentTier.SALES_LEADER)
        tx = make_transaction(agent)
        login(agent)

        response = client.put(
            f"/api/transactions/{tx.id}",
            json={"commission_amount": "15000.00", "market_type": "primary"},
        )
        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["commission_amount"]) == Decimal("15000.00")
        assert body["market_type"] == "primary"
        assert body["transaction_type"] == "sale"
        client.post(f"/api/transactions/{tx.id}/submit")

        login(admin)
        result = client.post(f"/api/transactions/{tx.id}/approve").json()
        assert Decimal(result["agent_share"]) == Decimal("12000.00")
        assert Decimal(result["company_share"]) == Decimal("3000.00")

    def test_edit_replaces_nested_details(self, client, login, make_agent, make_transaction):
        agent = make_agent()
        tx = make_transaction(agent)
        login(agent)

        client_data = transaction_payload()["client_data"]
        client_data["name"] = "Tan Wei Jie"
        body = client.put(f"/api/transactions/{tx.id}", json={"client_data": client_data}).json()

        assert body["client_data"]["name"] == "Tan Wei Jie"
        assert body["client_data"]["type"] == "buyer"

    def test_submitted_transaction_cannot_be_edited(self, client, login, make_agent, make_transaction):
        agent = make_agent()
        tx = make_transaction(agent, status=TransactionStatus.SUBMITTED)
        login(agent)

        response = client.put(f"/api/transactions/{tx.id}", json={"commission_amount": "1.00"})

        assert response.status_code == 409
        assert response.json()["error_type"] == "invalid_transition"
        assert Decimal(client.get(f"/api/transactions/{tx.id}").json()["commission_amount"]) == Decimal("12500.00")

    def test_null_fields_are_ignored(self, client, login, make_agent, make_transaction):
        agent = make_agent()
        tx = make_transaction(agent)
        login(agent)

        response = client.put(f"/api/transactions/{tx.id}", json={"commission_amount": None, "notes": "Called client"})

        assert response.status_code == 200
        assert Decimal(response.json()["commission_amount"]) == Decimal("12500.00")
        assert response.json()["notes"] == "Called client"

    def test_oversized_amount_is_refused(self, client, login, make_agent, make_transaction):
        agent = make_agent()
        tx = make_transaction(agent)
        login(agent)

        assert client.put(
            f"/api/transactions/{tx.id}", json={"commission_amount": "10000000000000.00"}
        ).status_code == 422
        assert client.post(
            "/api/transactions", json=transaction_payload(commission_amount="1E+30")
        ).status_code == 422

    def test_only_owner_can_edit_or_delete(self, client, login, admin, make_agent, make_transaction):
        tx = make_transaction(make_agent())

        for user in (make_agent(), admin):
            login(user)
            assert client.put(f"/api/transactions/{tx.id}", json={"notes": "x"}).status_code == 404
            assert client.delete(f"/api/transactions/{tx.id}").status_code == 404

    def test_owner_deletes_draft(self, client, login, make_agent, make_transaction):
        agent = make_agent()
        tx = make_transaction(agent)
        login(agent)

        assert client.delete(f"/api/transactions/{tx.id}").status_code == 200
        assert client.get(f"/api/transactions/{tx.id}").status_code == 404

    def test_submitted_transaction_cannot_be_deleted(self, client, login, make_agent, make_transaction):
        agent = make_agent()
        tx = make_transaction(agent, status=TransactionStatus.SUBMITTED)
        login(agent)

        response = client.delete(f"/api/transactions/{tx.id}")

        assert response.status_code == 409
        assert client.get(f"/api/transactions/{tx.id}").json()["status"] == "submitted"


class TestApprovalQueueApi:
    def test_bulk_approve_reports_each_transaction(
        self, client, login, db, admin, make_agent, make_transaction
    ):
        upline = make_agent(AgentTier.TEAM_LEADER)
        agent = make_agent(AgentTier.SALES_LEADER, recruiter=upline)
        first = make_transaction(agent, status=TransactionStatus.UNDER_REVIEW)
        draft = make_transaction(agent, status=TransactionStatus.DRAFT)

        a = make_agent(AgentTier.TEAM_LEADER)
        b = make_agent(AgentTier.TEAM_LEADER, recruiter=a)
        a.recruited_by_id = b.id
        db.commit()
        cyclic = make_transaction(a, status=TransactionStatus.UNDER_REVIEW)
        last = make_transaction(agent, status=TransactionStatus.SUBMITTED)
        login(admin)

        response = client.post(
            "/api/transactions/bulk",
            json={"transaction_ids": [first.id, draft.id, cyclic.id, last.id], "action": "approve"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["succeeded"] == 2
        assert body["failed"] == 2
        by_id = {r["transaction_id"]: r for r in body["results"]}
        assert by_id[first.id]["status"] == "approved"
        assert by_id[last.id]["status"] == "approved"
        assert by_id[draft.id]["error_type"] == "invalid_transition"
        assert by_id[cyclic.id]["error_type"] == "data_integrity"

        assert len(client.get(f"/api/transactions/{first.id}/ledger").json()) == 2
        assert len(client.get(f"/api/transactions/{last.id}/ledger").json()) == 2
        assert client.get(f"/api/transactions/{cyclic.id}/ledger").json() == []
        assert client.get(f"/api/transactions/{cyclic.id}").json()["status"] == "under_review"

    def test_bulk_approve_twice_pays_once(self, client, login, admin, make_agent, make_transaction):
        tx = make_transaction(make_agent(), status=TransactionStatus.UNDER_REVIEW)
        login(admin)

        body = client.post(
            "/api/transactions/bulk", json={"transaction_ids": [tx.id, tx.id], "action": "approve"}
        ).json()

        assert [r["success"] for r in body["results"]] == [True, False]
        assert body["results"][1]["error_type"] == "already_processed"
        assert len(client.get(f"/api/transactions/{tx.id}/ledger").json()) == 1

    def test_bulk_reject(self, client, login, admin, make_agent, make_transaction):
        agent = make_agent()
        txs = [make_transaction(agent, status=TransactionStatus.UNDER_REVIEW) for _ in range(2)]
        login(admin)
        ids = [tx.id for tx in txs]

        missing_reason = client.post("/api/transactions/bulk", json={"transaction_ids": ids, "action": "reject"})
        assert missing_reason.status_code == 422

        body = client.post(
            "/api/transactions/bulk",
            json={"transaction_ids": ids, "action": "reject", "reason": "  Incomplete paperwork  "},
        ).json()
        assert body["succeeded"] == 2
        for tx_id in ids:
            tx = client.get(f"/api/transactions/{tx_id}").json()
            assert tx["status"] == "rejected"
            assert tx["rejection_reason"] == "Incomplete paperwork"

    def test_bulk_is_admin_only(self, client, login, make_agent):
        login(make_agent())
        response = client.post("/api/transactions/bulk", json={"transaction_ids": [1], "action": "approve"})
        assert response.status_code == 403

    def test_unknown_bulk_action(self, client, login, admin):
        login(admin)
        response = client.post("/api/transactions/bulk", json={"transaction_ids": [1], "action": "archive"})
        assert response.status_code == 422

    def test_stats(self, client, login, admin, make_agent, make_transaction):
        upline = make_agent(AgentTier.TEAM_LEADER)
        agent = make_agent(AgentTier.SALES_LEADER, recruiter=upline)
        approved = make_transaction(agent, status=TransactionStatus.UNDER_REVIEW)
        make_transaction(agent, status=TransactionStatus.SUBMITTED)
        make_transaction(agent)
        make_transaction(upline, status=TransactionStatus.UNDER_REVIEW)
        login(admin)
        client.post(f"/api/transactions/{approved.id}/approve")

        stats = client.get("/api/transactions/stats").json()

        assert stats["total"] == 4
        assert stats["by_status"]["approved"] == 1
        assert stats["by_status"]["draft"] == 1
        assert stats["by_status"]["completed"] == 0
        assert stats["pending_review"] == 2
        assert Decimal(stats["own_commission_total"]) == Decimal("10000.00")
        assert Decimal(stats["leadership_bonus_total"]) == Decimal("125.00")

        mine = client.get("/api/transactions/stats", params={"agent_id": upline.id}).json()
        assert mine["total"] == 1
        assert Decimal(mine["own_commission_total"]) == Decimal("0")

    def test_stats_is_admin_only(self, client, login, make_agent):
        login(make_agent())
        assert client.get("/api/transactions/stats").status_code == 403


class TestAgentAdministrationApi:
    def test_list_agents_with_tiers(self, client, login, admin, make_agent):
        leader = make_agent(AgentTier.GROUP_LEADER)
        recruit = make_agent(recruiter=leader)
        login(admin)

        agents = client.get("/api/agent-tiers/agents").json()

        assert [a["id"] for a in agents] == [admin.id, leader.id, recruit.id]
        assert agents[1]["tier_config"]["tier"] == "group_leader"
        assert agents[2]["recruited_by_id"] == leader.id
        assert len(client.get("/api/agent-tiers/agents", params={"limit": 1}).json()) == 1

    def test_list_agents_is_admin_only(self, client, login, make_agent):
        login(make_agent())
        assert client.get("/api/agent-tiers/agents").status_code == 403

    def test_bulk_promote(self, client, login, admin, make_agent):
        advisor = make_agent()
        leader = make_agent(AgentTier.TEAM_LEADER)
        login(admin)

        response = client.post(
            "/api/agent-tiers/bulk-promote",
            json={"updates": [
                {"agent_id": advisor.id, "new_tier": "sales_leader", "reason": "Quarter review"},
                {"agent_id": leader.id, "new_tier": "advisor", "reason": "Quarter review"},
                {"agent_id": 999, "new_tier": "team_leader", "reason": "Quarter review"},
            ]},
        )

        assert response.status_code == 200
        results = response.json()
        assert results[0]["success"] is True
        assert results[0]["agent_tier"] == "sales_leader"
        assert results[1]["error_type"] == "validation_error"
        assert results[2]["error_type"] == "not_found"
        history = client.get(f"/api/agent-tiers/{leader.id}/history").json()
        assert history == []

    def test_preview_rejects_oversized_amount(self, client, login, make_agent):
        login(make_agent())
        response = client.post("/api/agent-tiers/preview", json={"commission_amount": "1E+30"})
        assert response.status_code == 422
