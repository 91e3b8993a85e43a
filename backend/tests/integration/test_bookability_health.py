"""
Integration tests for the admin bookability health report.
"""

from datetime import timedelta

from services.bookability_health_service import BookabilityHealthService
from tests.utils import (
    MONDAY, create_contract, create_payer, create_provider, create_supervision,
)


class TestBookabilityHealthReport:

    def test_gaps_reported(self, db_session):
        contracted = create_provider(db_session, first_name="Contracted")
        resident = create_provider(db_session, first_name="Resident")
        orphan = create_provider(db_session, first_name="Orphan")
        covered = create_payer(db_session, name="Covered")
        uncovered = create_payer(db_session, name="Uncovered")
        create_payer(db_session, name="Cash", payer_type="self_pay", status_code=None)
        create_payer(db_session, name="Denied", status_code="denied")
        create_contract(db_session, contracted, covered)
        create_supervision(db_session, resident, contracted)

        report = BookabilityHealthService.get_health_report(db_session, on_date=MONDAY)

        assert report["as_of"] == "2031-03-03"
        assert [item["provider_id"] for item in report["providers_without_payers"]] == [orphan.id]
        assert [item["payer_id"] for item in report["payers_without_providers"]] == [uncovered.id]
        assert [item["provider_id"] for item in report["providers_without_direct_contracts"]] == [
            resident.id, orphan.id
        ]

    def test_expiring_contract_windows_are_cumulative(self, db_session):
        provider = create_provider(db_session)
        payers = [create_payer(db_session, name=f"Payer {days}") for days in (10, 45, 80, 120)]
        contracts = [
            create_contract(db_session, provider, payer, expiration_date=MONDAY + timedelta(days=days))
            for payer, days in zip(payers, (10, 45, 80, 120))
        ]

        windows = BookabilityHealthService.get_health_report(db_session, on_date=MONDAY)["expiring_contracts"]

        assert sorted(windows.keys()) == ["30", "60", "90"]
        assert [item["contract_id"] for item in windows["30"]] == [contracts[0].id]
        assert [item["contract_id"] for item in windows["60"]] == [contracts[0].id, contracts[1].id]
        assert [item["contract_id"] for item in windows["90"]] == [c.id for c in contracts[:3]]

    def test_already_expired_contract_not_listed(self, db_session):
        provider = create_provider(db_session)
        payer = create_payer(db_session)
        create_contract(db_session, provider, payer, expiration_date=MONDAY - timedelta(days=1))

        report = BookabilityHealthService.get_health_report(db_session, on_date=MONDAY)

        assert all(items == [] for items in report["expiring_contracts"].values())
        assert [item["provider_id"] for item in report["providers_without_payers"]] == [provider.id]

    def test_empty_database(self, db_session):
        report = BookabilityHealthService.get_health_report(db_session, on_date=MONDAY)

        assert report["providers_without_payers"] == []
        assert report["payers_without_providers"] == []
        assert report["expiring_contracts"] == {"30": [], "60": [], "90": []}
