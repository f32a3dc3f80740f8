"""
Tests for geographic routing: SLA pattern matching, scope matching and
allowed "mark to" recipients.
"""
import pytest
from fastapi import HTTPException

from conftest import run, insert
from core.geography import (
    role_pattern_matches, scope_matches, validate_geographic_match, pick_best_scope,
    build_fallback_rules, dedupe_recipients, get_allowed_recipients, get_sla_hours,
    build_geography_query, record_matches_geography,
)


class TestRolePatterns:

    def test_wildcard_and_empty_match_everything(self):
        assert role_pattern_matches("XEN", "*")
        assert role_pattern_matches("XEN", "")
        assert role_pattern_matches("XEN", None)

    def test_exact_match_is_case_insensitive(self):
        assert role_pattern_matches("xen", "XEN")
        assert not role_pattern_matches("SE", "XEN")

    def test_prefix_wildcard(self):
        assert role_pattern_matches("CON_A", "CON*")
        assert not role_pattern_matches("XCON", "CON*")

    def test_regex_characters_are_literal(self):
        assert not role_pattern_matches("AXB", "A.B")
        assert role_pattern_matches("A.B", "A.B")


class TestScopeMatching:

    def test_global_always_matches(self):
        assert scope_matches("global", {}, {})

    def test_district_requires_same_district(self):
        assert scope_matches("district", {"district_id": "d1"}, {"district_id": "d1"})
        assert not scope_matches("district", {"district_id": "d1"}, {"district_id": "d2"})

    def test_missing_ids_never_match(self):
        assert not scope_matches("district", {}, {})
        assert not scope_matches("division", {"division_id": None}, {"division_id": None})

    def test_town_falls_back_to_district(self):
        assert scope_matches("town", {"district_id": "d1"}, {"district_id": "d1", "town_id": "t1"})
        assert not scope_matches("town", {"town_id": "t1"}, {"town_id": "t2"})

    def test_default_scope_is_district(self):
        assert scope_matches(None, {"district_id": "d1"}, {"district_id": "d1"})

    def test_validate_geographic_match(self):
        assert validate_geographic_match({"division_id": "v1"}, {"division_id": "v1"}, "division")
        assert not validate_geographic_match(None, {"district_id": "d1"})

    def test_pick_best_scope_prefers_broadest(self):
        assert pick_best_scope(["town", "district"]) == "district"
        assert pick_best_scope(["TOWN", "Global"]) == "global"
        assert pick_best_scope([]) is None

    def test_fallback_rule_uses_department_type(self):
        assert build_fallback_rules("division") == [
            {"from_role_code": "*", "to_role_code": "*", "level_scope": "division"}
        ]
        assert build_fallback_rules(None)[0]["level_scope"] == "district"

    def test_dedupe_keeps_first(self):
        rows = [{"id": "a", "n": 1}, {"id": "b"}, {"id": "a", "n": 2}]
        assert dedupe_recipients(rows) == [{"id": "a", "n": 1}, {"id": "b"}]


class TestGeographyQuery:

    def test_division_wins_over_town(self):
        query = build_geography_query({"division_id": "v1", "town_id": "t1", "zone_ids": ["z1"]})
        assert query == {"$or": [{"zone_id": {"$in": ["z1"]}}, {"division_id": "v1"}]}

    def test_empty_geography(self):
        assert build_geography_query({}) is None
        assert build_geography_query({"zone_ids": []}) is None

    def test_record_matching(self):
        geography = {"town_id": "t1", "district_id": "d1", "zone_ids": ["z1"]}
        assert record_matches_geography({"town_id": "t1"}, geography)
        assert record_matches_geography({"zone_id": "z1"}, geography)
        # district only counts when the user has no town
        assert not record_matches_geography({"district_id": "d1"}, geography)
        assert record_matches_geography({"district_id": "d1"}, {"district_id": "d1"})


class TestAllowedRecipients:

    def test_sender_is_required(self):
        with pytest.raises(HTTPException) as exc:
            run(get_allowed_recipients(""))
        assert exc.value.status_code == 400

    def test_unknown_sender(self, efiling):
        with pytest.raises(HTTPException) as exc:
            run(get_allowed_recipients("missing"))
        assert exc.value.status_code == 404

    def test_same_district_recipients_only(self, make_profile, efiling):
        geo = efiling["geo"]
        sender = make_profile("XEN")
        colleague = make_profile("SE", name="Colleague")
        make_profile("SE", name="Far Away", district=geo["other_district"], town=geo["other_town"])

        rows = run(get_allowed_recipients(sender["profile"]["id"], efiling["dept"]["id"]))
        assert [r["id"] for r in rows] == [colleague["profile"]["id"]]
        assert rows[0]["allowed_level_scope"] == "district"
        assert rows[0]["allowed_reason"] == "SLA_RULE"
        assert rows[0]["user_name"] == "Colleague"

    def test_global_department_members_are_candidates(self, make_profile, efiling):
        geo = efiling["geo"]
        sender = make_profile("XEN")
        insert("efiling_sla_matrix", from_role_code="XEN", to_role_code="CEO", level_scope="global", sla_hours=12, is_active=True)
        ceo = make_profile("CEO", name="Chief", district=geo["other_district"], town=geo["other_town"], department=efiling["exec_dept"])

        rows = run(get_allowed_recipients(sender["profile"]["id"], efiling["dept"]["id"]))
        ids = {r["id"]: r for r in rows}
        assert ceo["profile"]["id"] in ids
        assert ids[ceo["profile"]["id"]]["allowed_level_scope"] == "global"

    def test_global_role_sees_everyone(self, make_profile, efiling):
        geo = efiling["geo"]
        ceo = make_profile("CEO")
        far = make_profile("SE", district=geo["other_district"], town=geo["other_town"])

        rows = run(get_allowed_recipients(ceo["profile"]["id"]))
        assert [r["id"] for r in rows] == [far["profile"]["id"]]
        assert rows[0]["allowed_reason"] == "GLOBAL_ROLE"

    def test_inactive_profiles_are_excluded(self, make_profile, efiling):
        from database import db
        sender = make_profile("XEN")
        other = make_profile("SE")
        run(db.efiling_users.update_one({"id": other["profile"]["id"]}, {"$set": {"is_active": False}}))
        assert run(get_allowed_recipients(sender["profile"]["id"])) == []

    def test_sla_hours_from_matrix(self, efiling):
        insert("efiling_sla_matrix", from_role_code="XEN", to_role_code="SE", level_scope="district", sla_hours=6, is_active=True)
        from database import db
        run(db.efiling_sla_matrix.delete_many({"from_role_code": "*"}))
        assert run(get_sla_hours("xen", "se")) == 6
        assert run(get_sla_hours("SE", "XEN")) == 24
        assert run(get_sla_hours(None, "SE")) == 24
