"""
Unit tests for model helper properties.
"""

from datetime import date, time

from models import AvailabilityTemplate, Payer, Provider, ProviderPayerContract, SupervisionRelationship


class TestProvider:

    def test_languages_normalized(self):
        provider = Provider(first_name="Ana", last_name="Diaz", languages_spoken=[" Spanish", "English ", ""])
        assert provider.languages == ["spanish", "english"]

    def test_languages_from_comma_string(self):
        provider = Provider(first_name="Ana", last_name="Diaz", languages_spoken="Spanish, Vietnamese")
        assert provider.languages == ["spanish", "vietnamese"]

    def test_missing_languages(self):
        assert Provider(first_name="Ana", last_name="Diaz", languages_spoken=None).languages == []

    def test_full_name(self):
        assert Provider(first_name="Ana", last_name="Diaz").full_name == "Ana Diaz"


class TestPayer:

    def test_accepted_status_and_date(self):
        payer = Payer(name="X", payer_type="commercial", status_code="approved", effective_date=date(2031, 3, 1))
        assert payer.is_accepted_on(date(2031, 3, 1), ["approved"])
        assert not payer.is_accepted_on(date(2031, 2, 28), ["approved"])
        assert not payer.is_accepted_on(date(2031, 3, 1), ["active"])

    def test_projected_date_used_when_effective_missing(self):
        payer = Payer(name="X", payer_type="medicaid", status_code="approved", projected_effective_date=date(2031, 4, 1))
        assert not payer.is_accepted_on(date(2031, 3, 3), ["approved"])
        assert payer.is_accepted_on(date(2031, 4, 1), ["approved"])

    def test_self_pay_always_accepted(self):
        payer = Payer(name="Cash", payer_type="self_pay", status_code=None)
        assert payer.is_self_pay
        assert payer.is_accepted_on(date(2031, 3, 3), ["approved"])


class TestContractAndSupervision:

    def test_contract_window_inclusive(self):
        contract = ProviderPayerContract(
            provider_id=1, payer_id=1, status="in_network",
            effective_date=date(2031, 1, 1), expiration_date=date(2031, 3, 3),
        )
        assert contract.is_effective_on(date(2031, 1, 1))
        assert contract.is_effective_on(date(2031, 3, 3))
        assert not contract.is_effective_on(date(2031, 3, 4))
        assert not contract.is_effective_on(date(2030, 12, 31))

    def test_billing_provider_defaults_to_provider(self):
        contract = ProviderPayerContract(provider_id=7, payer_id=1, status="in_network", effective_date=date(2031, 1, 1))
        assert contract.effective_billing_provider_id == 7
        contract.billing_provider_id = 3
        assert contract.effective_billing_provider_id == 3

    def test_supervision_payer_scope(self):
        any_payer = SupervisionRelationship(supervised_provider_id=2, attending_provider_id=1, payer_id=None)
        scoped = SupervisionRelationship(supervised_provider_id=2, attending_provider_id=1, payer_id=5)
        assert any_payer.applies_to_payer(9)
        assert scoped.applies_to_payer(5)
        assert not scoped.applies_to_payer(9)


class TestTemplate:

    def test_duration_and_day_name(self):
        template = AvailabilityTemplate(
            provider_id=1, day_of_week=2, start_time=time(9, 0), end_time=time(12, 30), is_recurring=True
        )
        assert template.duration_minutes == 210
        assert template.day_name == "Wednesday"

    def test_non_recurring_never_applies(self):
        template = AvailabilityTemplate(
            provider_id=1, day_of_week=0, start_time=time(9, 0), end_time=time(12, 0), is_recurring=False
        )
        assert not template.applies_on(date(2031, 3, 3))
