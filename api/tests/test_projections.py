import pytest

from baa import lifecycle, projections, templates
from baa.authorization import Principal
from baa.errors import NotFound, ValidationError
from baa.models import Organization

from conftest import VALID_SIGNATURE, VENDOR_ADMIN


def admin_of(org_id):
    return Principal(principal_id=f"u-{org_id}", organization_id=org_id, role="org_admin")


@pytest.fixture
def mixed_states(session):
    """Six organizations, one in each reachable state plus one untouched."""
    extra = [("org-dune", "Dune Speech", "dune"), ("org-elm", "Elm Street ABA", "elm"), ("org-fox", "Fox Valley OT", "fox")]
    for org_id, name, subdomain in extra:
        session.add(Organization(id=org_id, name=name, subdomain=subdomain))
    session.commit()

    # org-acme: executed
    lifecycle.sign(session, admin_of("org-acme"), "org-acme", **VALID_SIGNATURE)
    lifecycle.countersign(session, VENDOR_ADMIN, "org-acme", "Sam Vendor", "Privacy Officer")
    # org-bright: awaiting vendor signature
    lifecycle.sign(session, admin_of("org-bright"), "org-bright", **VALID_SIGNATURE)
    # org-cedar: awaiting org signature
    lifecycle.ensure_started(session, admin_of("org-cedar"), "org-cedar")
    # org-dune: voided
    lifecycle.ensure_started(session, admin_of("org-dune"), "org-dune")
    lifecycle.void(session, VENDOR_ADMIN, "org-dune", "duplicate account")
    # org-elm: executed then superseded by v2, now awaiting org signature
    lifecycle.sign(session, admin_of("org-elm"), "org-elm", **VALID_SIGNATURE)
    lifecycle.countersign(session, VENDOR_ADMIN, "org-elm", "Sam Vendor", "Privacy Officer")
    templates.publish(session, "v2 {{ORGANIZATION_NAME}}")
    lifecycle.supersede(session, VENDOR_ADMIN, "org-elm")
    # org-fox: never opened
    return 6


def test_status_info_covers_every_status():
    assert set(projections.STATUS_INFO) == {
        "not_started",
        "awaiting_org_signature",
        "awaiting_vendor_signature",
        "executed",
        "voided",
        "superseded",
    }
    for info in projections.STATUS_INFO.values():
        assert info["label"] and info["description"]


def test_admin_stats_count_each_org_once(session, mixed_states):
    stats = projections.admin_stats(session)
    assert stats["executed"] == 1
    assert stats["awaiting_vendor_signature"] == 1
    assert stats["awaiting_org_signature"] == 2
    assert stats["voided"] == 1
    assert stats["not_started"] == 1
    counted = sum(stats[s] for s in projections.LISTABLE_STATUSES)
    assert counted == stats["total"] == mixed_states


def test_admin_list_filters_by_status(session, mixed_states):
    page = projections.admin_list(session, status="awaiting_org_signature")
    assert page["total"] == 2
    assert {row["organization"]["id"] for row in page["data"]} == {"org-cedar", "org-elm"}
    elm = next(row for row in page["data"] if row["organization"]["id"] == "org-elm")
    assert elm["agreement"]["template_version"] == 2

    untouched = projections.admin_list(session, status="not_started")
    assert [row["organization"]["id"] for row in untouched["data"]] == ["org-fox"]
    assert untouched["data"][0]["agreement"] is None
    assert untouched["data"][0]["status_info"]["label"] == "Not Started"


def test_admin_list_search_matches_name_or_subdomain(session, mixed_states):
    by_name = projections.admin_list(session, search="pediatrics")
    assert [row["organization"]["id"] for row in by_name["data"]] == ["org-cedar"]
    by_subdomain = projections.admin_list(session, search="BRIGHTPATH")
    assert [row["organization"]["id"] for row in by_subdomain["data"]] == ["org-bright"]
    assert projections.admin_list(session, search="nothing-like-this")["total"] == 0


def test_admin_list_search_is_literal(session):
    session.add(Organization(id="org-gulf", name="Gulf Coast OT", subdomain="gulf_coast"))
    session.add(Organization(id="org-pct", name="100% Kids Speech", subdomain="kids"))
    session.commit()

    underscore = projections.admin_list(session, search="_")
    assert [row["organization"]["id"] for row in underscore["data"]] == ["org-gulf"]
    percent = projections.admin_list(session, search="%")
    assert [row["organization"]["id"] for row in percent["data"]] == ["org-pct"]
    assert projections.admin_list(session, search="a_m")["total"] == 0


def test_admin_list_paginates(session, mixed_states):
    first = projections.admin_list(session, page=1, limit=4)
    second = projections.admin_list(session, page=2, limit=4)
    assert first["total"] == second["total"] == 6
    assert first["total_pages"] == 2
    assert len(first["data"]) == 4
    assert len(second["data"]) == 2
    ids = [row["organization"]["id"] for row in first["data"] + second["data"]]
    assert len(set(ids)) == 6
    # ordered by organization name
    names = [row["organization"]["name"] for row in first["data"] + second["data"]]
    assert names == sorted(names)


def test_admin_list_rejects_bad_input(session):
    with pytest.raises(ValidationError):
        projections.admin_list(session, status="superseded")
    with pytest.raises(ValidationError):
        projections.admin_list(session, page=0)
    assert projections.admin_list(session, limit=1000)["limit"] == 100


def test_org_detail_includes_history(session, mixed_states):
    detail = projections.org_detail(session, "org-elm")
    assert detail["status"] == "awaiting_org_signature"
    assert detail["can_countersign"] is False
    assert [a["status"] for a in detail["history"]] == ["awaiting_org_signature", "superseded"]
    assert detail["history"][0]["previous_agreement_id"] == detail["history"][1]["id"]

    empty = projections.org_detail(session, "org-fox")
    assert empty["current"] is None
    assert empty["history"] == []
    with pytest.raises(NotFound):
        projections.org_detail(session, "org-nowhere")


def test_agreement_view_nests_signatures(session, mixed_states):
    detail = projections.org_detail(session, "org-acme")
    current = detail["current"]
    assert current["org_signature"]["signer_name"] == "Jane Doe"
    assert current["org_signature"]["signer_email"] == "jane@acme.example.com"
    assert current["vendor_signature"]["signer_title"] == "Privacy Officer"
    assert current["void_info"] is None

    voided = projections.org_detail(session, "org-dune")["current"]
    assert voided["org_signature"] is None
    assert voided["void_info"]["reason"] == "duplicate account"


def test_preview_fills_organization_name(session):
    preview = projections.preview(session, "org-acme")
    assert "COVERED ENTITY: Acme Therapy" in preview["content"]
    assert "{{" not in preview["content"]
    assert preview["template_version"] == 1
