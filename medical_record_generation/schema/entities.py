"""
Entity Schemas
==============

WHAT THIS MODULE DOES:
Defines the structured records the pipeline generates as Pydantic models.
Each model is used three ways:
    1. As the Python type returned by generators
    2. As the runtime validator for parsed model output
    3. As the source of the JSON schema embedded in prompts

WHY PYDANTIC:
1. **Type Safety**: Fields are validated automatically on parse.
2. **Documentation**: Field descriptions become part of the JSON schema
   the model sees, so they double as output instructions.
3. **Wire Compatibility**: Attributes are snake_case in Python, while the
   JSON shape uses camelCase aliases (``dateOfBirth``, ``subscriberDOB``).

CONVENTIONS:
- Fields the model may legitimately leave empty are Optional with a None
  default. Fields that normalization fills (patient id, age, pharmacy) are
  Optional too, so a partial answer can be completed deterministically.
- Dumps for caching and output always use ``by_alias=True``.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from medical_record_generation.core.enums import LabTestType
from medical_record_generation.schema.dates import parse_date


# ============================================================================
# BASE MODEL
# ============================================================================


class EntityModel(BaseModel):
    """
    Base class for every generated record.

    Populates from either camelCase (model output, cache) or snake_case
    (Python callers) and ignores unknown keys the model adds.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_json_dict(self) -> Dict[str, Any]:
        """camelCase, JSON-compatible dump used for caching and output."""
        return self.model_dump(by_alias=True, mode="json")


# ============================================================================
# BASIC BUILDING BLOCKS
# ============================================================================


class Address(EntityModel):
    street: str = Field(..., description="Street address")
    city: str = Field(..., description="City name")
    state: str = Field(
        ..., min_length=2, max_length=2, description="Two-letter state code (e.g., CA, NY)"
    )
    zip_code: str = Field(..., description="ZIP code")
    country: Optional[str] = Field(default=None, description="Country name (optional)")

    def one_line(self) -> str:
        """Single-line postal form, e.g. "1 Main St, Springfield, IL 62701"."""
        return f"{self.street}, {self.city}, {self.state} {self.zip_code}"


class Contact(EntityModel):
    phone: str = Field(..., description="Phone number in format (XXX) XXX-XXXX")
    email: str = Field(
        ..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", description="Email address"
    )
    emergency_contact: str = Field(..., description="Emergency contact name and phone")


class Insurance(EntityModel):
    provider: str = Field(..., description="Insurance provider name")
    policy_number: str = Field(..., description="Policy number")
    group_number: Optional[str] = Field(default=None, description="Group number")
    effective_date: str = Field(..., description="Effective date in YYYY-MM-DD format")
    member_id: Optional[str] = Field(default=None, description="Member ID")
    copay: Optional[str] = Field(default=None, description="Copay amount (e.g., $20)")
    deductible: Optional[str] = Field(default=None, description="Deductible amount (e.g., $1000)")


class Pharmacy(EntityModel):
    name: str = Field(..., description="Pharmacy name")
    address: str = Field(..., description="Pharmacy address")
    phone: str = Field(..., description="Pharmacy phone number")


# ============================================================================
# PATIENT
# ============================================================================


class Patient(EntityModel):
    """
    Patient demographics.

    ``name`` uses the "Last, First M" form. ``insurance`` mirrors the
    primary insurance once a record is assembled.
    """

    id: Optional[str] = Field(default=None, description="Unique patient identifier")
    name: Optional[str] = Field(default=None, description="Full name (Last, First MiddleInitial)")
    first_name: str = Field(..., description="First name")
    last_name: str = Field(..., description="Last name")
    middle_initial: Optional[str] = Field(default=None, description="Middle initial")
    date_of_birth: str = Field(..., description="Date of birth in MM/DD/YYYY format")
    age: Optional[int] = Field(default=None, ge=0, description="Age in years")
    gender: str = Field(..., description="Gender")
    address: Address
    contact: Contact
    pharmacy: Optional[Pharmacy] = None
    medical_record_number: Optional[str] = Field(
        default=None, description="Medical record number (MRN)"
    )
    ssn: str = Field(..., description="Social Security Number in XXX-XX-XXXX format")
    account_number: Optional[str] = Field(default=None, description="Account number")
    insurance: Optional[Insurance] = Field(
        default=None, description="Primary insurance (filled during assembly)"
    )


# ============================================================================
# INSURANCE INFORMATION
# ============================================================================


class SecondaryInsured(EntityModel):
    name: str
    policy_number: str
    plan_name: str


class InsuranceInfo(EntityModel):
    primary_insurance: Insurance
    secondary_insurance: Optional[Insurance] = None
    subscriber_name: str = Field(..., description="Subscriber name if different from patient")
    subscriber_dob: str = Field(..., alias="subscriberDOB", description="Subscriber date of birth")
    subscriber_gender: str = Field(..., description="Subscriber gender")
    type: str = Field(..., description="Insurance type (e.g., HMO, PPO, Medicare)")
    pica_code: Optional[str] = Field(default=None, description="PICA code")
    phone: str = Field(..., description="Subscriber phone")
    address: Address = Field(..., description="Subscriber address")
    secondary_insured: Optional[SecondaryInsured] = Field(
        default=None, description="Secondary insured information"
    )


# ============================================================================
# PROVIDER
# ============================================================================


class ReferringProvider(EntityModel):
    name: str
    npi: str


class Provider(EntityModel):
    name: str = Field(..., description="Provider full name (e.g., Dr. John Smith)")
    npi: str = Field(
        ..., min_length=10, max_length=10, description="National Provider Identifier (10 digits)"
    )
    specialty: str = Field(..., description="Medical specialty")
    phone: str = Field(..., description="Provider phone number")
    address: Address
    tax_id: str = Field(..., description="Tax ID number")
    tax_id_type: Literal["SSN", "EIN"] = Field(..., description="Tax ID type")
    signature: Optional[str] = Field(default=None, description="Provider signature")
    facility_name: str = Field(..., description="Facility name")
    facility_address: Address
    facility_phone: str = Field(..., description="Facility phone number")
    facility_fax: str = Field(..., description="Facility fax number")
    facility_npi: str = Field(..., alias="facilityNPI", description="Facility NPI")
    billing_name: Optional[str] = Field(default=None, description="Billing provider name")
    billing_address: Optional[str] = Field(default=None, description="Billing address")
    billing_phone: Optional[str] = Field(default=None, description="Billing phone number")
    billing_npi: Optional[str] = Field(default=None, alias="billingNPI", description="Billing NPI")
    referring_provider: Optional[ReferringProvider] = Field(
        default=None, description="Referring provider information"
    )


# ============================================================================
# CMS-1500 CLAIM
# ============================================================================


class ServiceLine(EntityModel):
    date_from: str = Field(..., description="Service date from (MM/DD/YYYY)")
    date_to: str = Field(..., description="Service date to (MM/DD/YYYY)")
    place_of_service: str = Field(..., description="Place of service code")
    emg: str = Field(default="", description="Emergency indicator")
    procedure_code: str = Field(..., description="CPT/HCPCS procedure code")
    modifier: str = Field(default="", description="Procedure modifier")
    diagnosis_pointer: str = Field(..., description="Diagnosis pointer (e.g., A, B, C)")
    charges: str = Field(..., description="Charge amount")
    units: str = Field(..., description="Units of service")
    epsdt: str = Field(default="", description="EPSDT indicator")
    id_qual: str = Field(default="", description="ID qualifier")
    rendering_provider_npi: str = Field(
        ..., alias="renderingProviderNPI", description="Rendering provider NPI"
    )


class ClaimInfo(EntityModel):
    patient_relationship: Literal["self", "spouse", "child", "other"] = Field(
        ..., description="Patient's relationship to subscriber"
    )
    signature_date: str = Field(..., description="Patient signature date")
    provider_signature_date: str = Field(..., description="Provider signature date")
    date_of_illness: str = Field(default="", description="Date of current illness/injury")
    service_date: str = Field(..., description="Service date")
    illness_qualifier: str = Field(default="", description="Illness qualifier code")
    other_date: str = Field(default="", description="Other date")
    other_date_qualifier: str = Field(default="", description="Other date qualifier")
    unable_to_work_from: str = Field(default="", description="Unable to work from date")
    unable_to_work_to: str = Field(default="", description="Unable to work to date")
    hospitalization_from: str = Field(default="", description="Hospitalization from date")
    hospitalization_to: str = Field(default="", description="Hospitalization to date")
    additional_info: str = Field(default="", description="Additional claim information")
    outside_lab: bool = Field(default=False, description="Outside lab used")
    outside_lab_charges: str = Field(default="", description="Outside lab charges")
    diagnosis_codes: List[str] = Field(..., min_length=1, description="ICD-10 diagnosis codes")
    resubmission_code: str = Field(default="", description="Resubmission code")
    original_ref_no: str = Field(default="", description="Original reference number")
    prior_auth_number: str = Field(default="", description="Prior authorization number")
    service_lines: List[ServiceLine] = Field(..., min_length=1, description="Service line items")
    has_other_health_plan: bool = Field(default=False, description="Has other health plan")
    other_claim_id: str = Field(default="", description="Other claim ID")
    accept_assignment: bool = Field(default=True, description="Accept assignment")
    total_charges: Optional[str] = Field(default=None, description="Total charges")
    amount_paid: str = Field(default="", description="Amount paid")


class CMS1500Claim(EntityModel):
    """A claim form embedding patient, insurance and provider snapshots."""

    patient: Patient
    insurance_info: InsuranceInfo
    provider: Provider
    claim_info: ClaimInfo


class InsurancePolicy(EntityModel):
    """Policy document pairing a patient with their coverage."""

    patient: Patient
    insurance_info: InsuranceInfo


# ============================================================================
# VISITS AND VITAL SIGNS
# ============================================================================


class VisitVitals(EntityModel):
    blood_pressure: str = Field(..., description="Blood pressure (e.g., 120/80)")
    heart_rate: float = Field(..., description="Heart rate in bpm")
    temperature: float = Field(..., description="Temperature in °F")
    weight: float = Field(..., description="Weight in lbs")
    height: str = Field(..., description="Height (e.g., 5'10\")")
    oxygen_saturation: float = Field(..., description="Oxygen saturation %")


class VitalSigns(EntityModel):
    date: str = Field(..., description="Date in MM/DD/YYYY format")
    time: str = Field(..., description="Time in HH:MM format")
    blood_pressure: str = Field(..., description="Blood pressure (e.g., 120/80)")
    heart_rate: str = Field(..., description="Heart rate in bpm")
    temperature: str = Field(..., description="Temperature in °F")
    weight: str = Field(..., description="Weight in lbs")
    height: str = Field(..., description="Height in inches or format 5'10\"")
    bmi: str = Field(..., description="Body Mass Index")
    oxygen_saturation: str = Field(..., description="Oxygen saturation %")
    respiratory_rate: str = Field(..., description="Respiratory rate per minute")


class VisitNote(EntityModel):
    date: str = Field(..., description="Visit date in MM/DD/YYYY format")
    type: str = Field(..., description="Visit type (e.g., Office Visit, Follow-up)")
    chief_complaint: str = Field(..., description="Chief complaint")
    assessment: List[str] = Field(..., description="Assessment findings")
    plan: List[str] = Field(..., description="Treatment plan")
    provider: str = Field(..., description="Provider name")
    duration: str = Field(..., description="Visit duration")
    vitals: VisitVitals


class VisitReport(EntityModel):
    visit: VisitNote
    vital_signs: VitalSigns


class VisitReportCollection(EntityModel):
    """Envelope for multi-visit output; JSON mode only returns objects."""

    visits: List[VisitReport] = Field(
        ..., min_length=1, description="Visit reports in chronological order"
    )


# ============================================================================
# MEDICAL HISTORY
# ============================================================================


class Allergy(EntityModel):
    allergen: str = Field(..., description="Allergen name (e.g., Penicillin, Peanuts)")
    reaction: str = Field(..., description="Allergic reaction (e.g., Rash, Anaphylaxis)")
    severity: str = Field(..., description="Severity level (Mild, Moderate, Severe)")
    date_identified: str = Field(..., description="Date allergy was identified")


class ChronicCondition(EntityModel):
    condition: str = Field(..., description="Condition name (e.g., Hypertension, Diabetes)")
    diagnosed_date: str = Field(..., description="Date of diagnosis")
    status: str = Field(..., description="Current status (Active, Controlled, Resolved)")
    notes: str = Field(default="", description="Additional notes about the condition")


class SurgicalHistory(EntityModel):
    procedure: str = Field(..., description="Surgical procedure name")
    date: str = Field(..., description="Date of surgery")
    hospital: str = Field(..., description="Hospital or facility name")
    surgeon: str = Field(..., description="Surgeon name")
    complications: str = Field(default="None", description='Any complications (or "None")')


class FamilyHistory(EntityModel):
    relation: str = Field(..., description="Relationship to patient (e.g., Mother, Father)")
    conditions: List[str] = Field(..., description="Medical conditions")
    age_at_death: str = Field(default="Living", description='Age at death or "Living"')
    cause_of_death: str = Field(default="N/A", description='Cause of death or "N/A"')


class CurrentMedication(EntityModel):
    name: str = Field(..., description="Medication name")
    strength: str = Field(..., description="Strength/dosage (e.g., 10mg)")
    dosage: str = Field(..., description="Dosage instructions (e.g., Take 1 tablet)")
    purpose: str = Field(..., description="Purpose/indication for medication")
    prescribed_by: str = Field(..., description="Prescribing provider")
    start_date: str = Field(..., description="Date started")
    instructions: str = Field(default="", description="Special instructions")


class DiscontinuedMedication(EntityModel):
    name: str = Field(..., description="Medication name")
    strength: str = Field(..., description="Strength/dosage (e.g., 10mg)")
    reason: str = Field(..., description="Reason for discontinuation")
    discontinued_date: str = Field(..., description="Date discontinued")
    prescribed_by: str = Field(..., description="Prescribing provider")


class Medications(EntityModel):
    current: List[CurrentMedication] = Field(..., description="Current medications")
    discontinued: List[DiscontinuedMedication] = Field(
        default_factory=list, description="Discontinued medications"
    )


class MedicalHistory(EntityModel):
    medications: Medications
    allergies: List[Allergy] = Field(..., description="List of allergies")
    chronic_conditions: List[ChronicCondition] = Field(
        ..., description="List of chronic conditions"
    )
    surgical_history: List[SurgicalHistory] = Field(
        default_factory=list, description="Surgical history"
    )
    family_history: List[FamilyHistory] = Field(
        default_factory=list, description="Family medical history"
    )


# ============================================================================
# LABORATORY REPORTS
# ============================================================================


class LabTestResult(EntityModel):
    parameter: str = Field(..., description="Test parameter name")
    value: str = Field(..., description="Test result value")
    unit: str = Field(..., description="Unit of measurement")
    reference_range: str = Field(..., description="Normal reference range")
    flag: Literal["Normal", "High", "Low", "Critical", "Abnormal", ""] = Field(
        default="", description="Result flag"
    )
    notes: Optional[str] = Field(default=None, description="Additional notes")


class PerformingLab(EntityModel):
    name: str = Field(..., description="Laboratory name")
    address: Address
    phone: str = Field(..., description="Lab phone number")
    clia_number: str = Field(..., description="CLIA number")
    director: str = Field(..., description="Lab director name")


class LaboratoryReport(EntityModel):
    """
    One laboratory panel.

    The specimen cannot be collected after the report was issued; the check
    applies only when both dates parse.
    """

    test_type: Optional[LabTestType] = Field(default=None, description="Type of lab test")
    test_name: str = Field(..., description="Full test name")
    specimen_type: str = Field(..., description="Specimen type (e.g., Blood, Urine)")
    specimen_collection_date: str = Field(..., description="Date specimen collected")
    specimen_collection_time: str = Field(default="", description="Time specimen collected")
    specimen_received_date: str = Field(default="", description="Date specimen received by lab")
    report_date: str = Field(..., description="Date report generated")
    report_time: str = Field(default="", description="Time report generated")
    ordering_physician: str = Field(..., description="Ordering physician name")
    performing_lab: PerformingLab = Field(..., description="Performing laboratory information")
    results: List[LabTestResult] = Field(..., min_length=1, description="Test results")
    interpretation: Optional[str] = Field(default=None, description="Clinical interpretation")
    comments: Optional[str] = Field(default=None, description="Additional comments")
    critical_values: Optional[List[str]] = Field(default=None, description="Critical values")
    technologist: Optional[str] = Field(default=None, description="Technologist name")
    pathologist: Optional[str] = Field(default=None, description="Pathologist name")

    @model_validator(mode="after")
    def collection_not_after_report(self) -> "LaboratoryReport":
        collected = parse_date(self.specimen_collection_date)
        reported = parse_date(self.report_date)
        if collected and reported and collected > reported:
            raise ValueError("specimenCollectionDate must not be after reportDate")
        return self
