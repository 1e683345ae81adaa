"""
Tests for Treatments and Vaccinations
Dose parsing, withdrawal dates and bulk treatments
"""
import pytest
from datetime import date
from decimal import Decimal

from stockledger.core.exceptions import InsufficientStockError, InvalidArgumentError, NotFoundError
from stockledger.schemas.allocation import (
    BulkSubject, BulkTreatmentRequest, TreatmentRequest, VaccinationRequest
)
from stockledger.services.allocation.treatment import dose_unit_matches, parse_dose


class TestDoseParsing:
    """Test suite for free-text doses"""

    @pytest.mark.parametrize("text,expected", [
        ("5cc", (Decimal("5"), "cc")),
        ("2.5 ml", (Decimal("2.5"), "ml")),
        (" 10ML ", (Decimal("10"), "ml")),
        ("1 dose", (Decimal("1"), "doses")),
        ("2 doses", (Decimal("2"), "doses")),
        ("3", (Decimal("3"), None)),
    ])
    def test_parse_valid_doses(self, text, expected):
        assert parse_dose(text) == expected

    @pytest.mark.parametrize("text", ["", "five cc", "5 cc extra", "cc5", "-2ml", "5 lbs"])
    def test_parse_invalid_doses(self, text):
        with pytest.raises(InvalidArgumentError, match="Invalid dose format"):
            parse_dose(text)

    def test_cc_and_ml_are_interchangeable(self):
        assert dose_unit_matches("cc", "ml")
        assert dose_unit_matches("ml", "cc")
        assert dose_unit_matches(None, "doses")
        assert not dose_unit_matches("doses", "ml")


class TestSingleTreatments:
    """Test suite for single-subject treatments"""

    def test_treatment_sets_withdrawal_date(self, ledger, sample_drug_data):
        drug = ledger.create_item(sample_drug_data)

        result = ledger.record_treatment(
            TreatmentRequest(subject_id="cow-17", subject_label="Tag 17", item_id=drug.id,
                             dose=Decimal("12"), event_date=date(2024, 5, 1)),
            "Dr. Vet",
        )

        event = result.event
        assert event.event_kind == "treatment"
        assert event.subject_count == 1
        assert event.operator == "Dr. Vet"
        assert len(event.subjects) == 1
        share = event.subjects[0]
        assert share.subject_id == "cow-17"
        assert share.quantity == Decimal("12")
        assert share.cost == Decimal("1.80")
        assert share.withdrawal_until == date(2024, 5, 11)
        assert result.transactions[0].reason == "Treatment for Tag 17"
        assert ledger.get_item(drug.id).quantity_on_hand == Decimal("488")

    def test_treatment_rejects_zero_dose(self, ledger, sample_drug_data):
        drug = ledger.create_item(sample_drug_data)

        with pytest.raises(InvalidArgumentError):
            ledger.record_treatment(TreatmentRequest(subject_id="cow-1", item_id=drug.id, dose=Decimal("0")),
                                    "Dr. Vet")

    def test_vaccination_accepts_cc_for_ml_item(self, ledger, sample_drug_data):
        drug = ledger.create_item(sample_drug_data)

        result = ledger.record_vaccination(
            VaccinationRequest(subject_id="calf-3", item_id=drug.id, dose="5cc"), "Dr. Vet"
        )

        assert result.event.event_kind == "vaccination"
        assert ledger.get_item(drug.id).quantity_on_hand == Decimal("495")

    def test_vaccination_unit_mismatch(self, ledger, make_item):
        vaccine = make_item(category="vaccine", unit="doses")

        with pytest.raises(InvalidArgumentError):
            ledger.record_vaccination(VaccinationRequest(subject_id="calf-3", item_id=vaccine.id, dose="2ml"),
                                      "Dr. Vet")
        assert ledger.get_transactions(item_id=vaccine.id) == []

    def test_vaccination_missing_item(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.record_vaccination(VaccinationRequest(subject_id="calf-3", item_id="missing", dose="1 dose"),
                                      "Dr. Vet")


class TestBulkTreatment:
    """Test suite for group treatments"""

    def test_bulk_treatment_single_deduction(self, ledger, sample_drug_data):
        drug = ledger.create_item(sample_drug_data)

        result = ledger.bulk_treatment(
            BulkTreatmentRequest(
                item_id=drug.id,
                dose_per_head=Decimal("5"),
                subjects=[
                    BulkSubject(subject_id="cow-1"),
                    BulkSubject(subject_id="cow-2"),
                    BulkSubject(subject_id="cow-3", dose=Decimal("8")),
                ],
                subject_group_id="pen-2",
                subject_group_name="Pen 2",
                event_date=date(2024, 6, 1),
            ),
            "Dr. Vet",
        )

        assert len(result.transactions) == 1
        assert result.transactions[0].quantity_change == Decimal("-18")
        event = result.event
        assert event.event_kind == "bulk_treatment"
        assert event.subject_count == 3
        assert {s.subject_id: s.quantity for s in event.subjects} == {
            "cow-1": Decimal("5"), "cow-2": Decimal("5"), "cow-3": Decimal("8"),
        }
        assert all(s.transaction_id == result.transactions[0].id for s in event.subjects)
        assert ledger.get_item(drug.id).quantity_on_hand == Decimal("482")

    def test_bulk_treatment_is_all_or_nothing(self, ledger, make_item):
        drug = make_item(quantity_on_hand=Decimal("12"))
        subjects = [BulkSubject(subject_id=f"cow-{n}") for n in range(3)]

        with pytest.raises(InsufficientStockError) as exc_info:
            ledger.bulk_treatment(
                BulkTreatmentRequest(item_id=drug.id, dose_per_head=Decimal("5"), subjects=subjects),
                "Dr. Vet",
            )

        assert exc_info.value.shortfall == Decimal("3")
        assert ledger.get_item(drug.id).quantity_on_hand == Decimal("12")
        assert ledger.list_events() == []

    def test_bulk_treatment_duplicate_subject(self, ledger, make_item):
        drug = make_item()

        with pytest.raises(InvalidArgumentError):
            ledger.bulk_treatment(
                BulkTreatmentRequest(item_id=drug.id, dose_per_head=Decimal("1"),
                                     subjects=[BulkSubject(subject_id="cow-1"), BulkSubject(subject_id="cow-1")]),
                "Dr. Vet",
            )

    def test_bulk_treatment_needs_a_dose(self, ledger, make_item):
        drug = make_item()

        with pytest.raises(InvalidArgumentError):
            ledger.bulk_treatment(
                BulkTreatmentRequest(item_id=drug.id, subjects=[BulkSubject(subject_id="cow-1")]),
                "Dr. Vet",
            )


class TestWithdrawal:
    """Test suite for withdrawal tracking"""

    def test_subjects_in_withdrawal(self, ledger, sample_drug_data, make_item):
        drug = ledger.create_item(sample_drug_data)
        no_withdrawal = make_item(withdrawal_period_days=0)
        ledger.record_treatment(
            TreatmentRequest(subject_id="cow-1", item_id=drug.id, dose=Decimal("5"), event_date=date(2024, 5, 1)),
            "Dr. Vet",
        )
        ledger.record_treatment(
            TreatmentRequest(subject_id="cow-2", item_id=drug.id, dose=Decimal("5"), event_date=date(2024, 4, 1)),
            "Dr. Vet",
        )
        ledger.record_treatment(
            TreatmentRequest(subject_id="cow-3", item_id=no_withdrawal.id, dose=Decimal("5"),
                             event_date=date(2024, 5, 1)),
            "Dr. Vet",
        )

        statuses = ledger.treatment.subjects_in_withdrawal(as_of=date(2024, 5, 5))

        assert [s.subject_id for s in statuses] == ["cow-1"]
        assert statuses[0].withdrawal_until == date(2024, 5, 11)
