"""
Prompt Builder - Structured Record Generation Prompts

This module constructs the user prompts sent for each entity kind.
Prompts are designed to:
    1. Produce completely synthetic, HIPAA-safe records
    2. Carry the entity's JSON schema so output matches validation
    3. Be deterministic: the same options always yield the same prompt

Why Separate Prompt Builder:
    1. Single Responsibility: prompt text separate from the call/validate loop
    2. Testability: prompts can be inspected without any model calls
    3. Maintainability: all prompt templates live in one place

Pipeline Position:
    Options → [PromptBuilder] → RetryOrchestrator → SchemaRegistry → Normalizers
              ^^^^^^^^^^^^^^^
              You are here
"""

import json
from typing import Any, Dict, Optional

from medical_record_generation.core.constants import COMPLEXITY_DETAILS, LAB_TEST_DETAILS
from medical_record_generation.core.enums import EntityKind, LabTestType
from medical_record_generation.generation.options import (
    CMS1500Options,
    InsuranceOptions,
    InsurancePolicyOptions,
    LabReportOptions,
    MedicalHistoryOptions,
    PatientOptions,
    ProviderOptions,
    VisitReportOptions,
)
from medical_record_generation.schema.entities import ClaimInfo, Patient
from medical_record_generation.schema.registry import SchemaRegistry, default_registry


# =============================================================================
# STAGE 1: PROMPT TEMPLATES
# =============================================================================

OUTPUT_FORMAT_TEMPLATE = """
**OUTPUT FORMAT:**
Respond with a single JSON object that conforms to this JSON schema. Use the
exact camelCase property names shown. Do not wrap the JSON in markdown.

{schema}
"""

PATIENT_TEMPLATE = """Generate complete patient demographics for a synthetic medical record.

**Requirements:**
- Complete demographics with realistic US address, contact info
- Medical Record Number (MRN), Social Security Number (SSN format: XXX-XX-XXXX)
- Account number
- Age between {age_min}-{age_max} years
- Gender: {gender}
- All dates in MM/DD/YYYY format
- Pharmacy information with name, address, and phone
- All data must be completely synthetic and HIPAA-compliant

Generate realistic, clinically coherent data following US healthcare standards.
"""

PROVIDER_TEMPLATE = """Generate complete healthcare provider and facility information.

**Requirements:**
- Provider full name with credentials (e.g., Dr. Jane Smith, MD)
- Specialty: {specialty}
- Valid-looking 10-digit NPI for the provider and for the facility
- Tax ID with type SSN or EIN
- Facility type: {facility_type}
- Facility name, address, phone and fax
- Billing provider information
- All data must be completely synthetic

Generate realistic, professional provider and facility data.
"""

INSURANCE_TEMPLATE = """Generate complete insurance information for a medical record.

**Patient Information:**
{patient_section}

**Requirements:**
- Primary insurance (required):
  - Provider name (major US insurer)
  - Policy number
  - Group number
  - Member ID
  - Effective date (current year)
  - Copay and deductible amounts
- {secondary_rule}
- Subscriber information:
  - {subscriber_rule}
- Insurance type (e.g., HMO, PPO, Medicare)
- All data must be completely synthetic

Generate realistic insurance information following US healthcare standards.
"""

CMS1500_TEMPLATE = """Based on this patient data, generate realistic CMS-1500 insurance claim form data:

Patient: {patient_name}
DOB: {date_of_birth}
Insurance: {insurer}
Provider: {provider_name} (NPI {provider_npi})

Generate comprehensive service lines (2-5 services) with:
- Date of service (within last 90 days)
- Place of service code (appropriate for service type)
- Procedure codes (CPT codes like 99213, 99214, 85025, etc.)
- Diagnosis pointers (linking to conditions)
- Charges (realistic amounts)
- Units and modifiers
- Rendering provider NPI {provider_npi}

Include claim information with:
- Patient relationship to subscriber ({relationship})
- Signature date
- Illness/injury date (if applicable)
- Diagnosis codes (ICD-10)
- Prior authorization number (if applicable)
- Total charges

Return ONLY the claim information object described below. Patient, insurance
and provider details are attached separately. All data must be completely synthetic.
"""

INSURANCE_POLICY_TEMPLATE = """Generate the coverage section of an insurance policy document.

**Policyholder:**
{patient_section}

**Requirements:**
- The policyholder above is the subscriber
- Primary insurance with provider, policy number, group number, member ID,
  effective date (within the last 2 years), copay and deductible
- {secondary_rule}
- Insurance type (e.g., HMO, PPO, EPO, POS, Medicare Advantage)
- All data must be completely synthetic
"""

VISIT_REPORTS_TEMPLATE = """Generate {count} realistic medical visit report(s) for this patient:

Patient: {patient_name}
Age: {age} years
Gender: {gender}
Provider: {provider_name} ({specialty})

Each visit must include:
- Visit date (within the last 12 months), type and duration
- Chief complaint (realistic for patient age/gender)
- Vital signs (BP, HR, Temp, RR, O2 Sat, Height, Weight, BMI)
- Assessment findings and treatment plan
- The provider name above

Return the visits in chronological order under a "visits" array. Every visit
after the first must follow up on the one before it (same chronic problems,
response to the prior plan). Make the visits clinically coherent and
age-appropriate. All data must be completely synthetic.
"""

MEDICAL_HISTORY_TEMPLATE = """Generate a comprehensive medical history for this patient:

Patient: {patient_name}
Age: {age} years
Gender: {gender}

**Complexity Level: {complexity}** ({complexity_details})

Include:
- Current medications (with strength, dosage, purpose, prescriber, start dates)
- Discontinued medications (with reasons)
- Chronic conditions (with diagnosis dates, status)
- Allergies (allergen, reaction, severity)
- Surgical history (procedures with dates)
- Family history (relatives, conditions, ages)

Make all conditions and medications clinically appropriate for the patient's
age and gender. Ensure internal consistency across all medical history elements.
All data must be completely synthetic.
"""

LAB_REPORT_TEMPLATE = """Generate a realistic {test_type} laboratory report for this patient:

Patient: {patient_name}
Age: {age} years
Gender: {gender}
Ordering physician: {ordering_physician}

**Test:** {test_type} - {test_details}

Requirements:
- testType must be exactly "{test_type}"
- Complete set of result parameters with values, units and reference ranges
- Flag each result as Normal, High, Low, Critical or Abnormal
- Specimen collection date on or before the report date (MM/DD/YYYY)
- Performing laboratory with address, CLIA number and director
- Clinical interpretation consistent with the flagged results
- All data must be completely synthetic
"""


# =============================================================================
# STAGE 2: PROMPT BUILDER CLASS
# =============================================================================


class PromptBuilder:
    """
    Constructs user prompts for every entity kind.

    What it does:
        Renders the option object of a generator into prompt text with the
        entity's JSON schema appended.

    Why it exists:
        1. Keeps prompt wording out of the generator control flow
        2. Enables testing prompts without making model calls
        3. Guarantees the word "JSON" appears, which JSON mode requires

    Example:
        >>> builder = PromptBuilder()
        >>> prompt = builder.patient_prompt(PatientOptions(age_min=30, age_max=40))
        >>> "Age between 30-40 years" in prompt
        True
    """

    def __init__(self, registry: SchemaRegistry = default_registry):
        self._registry = registry

    # =========================================================================
    # STAGE 2.1: SHARED SECTIONS
    # =========================================================================

    def output_format(self, schema: Dict[str, Any]) -> str:
        return OUTPUT_FORMAT_TEMPLATE.format(schema=json.dumps(schema, indent=2))

    def entity_output_format(self, entity_kind: EntityKind) -> str:
        return self.output_format(self._registry.json_schema_for(entity_kind))

    @staticmethod
    def patient_section(patient: Patient) -> str:
        return "\n".join(
            [
                f"- Name: {patient.first_name} {patient.last_name}",
                f"- DOB: {patient.date_of_birth}",
                f"- Gender: {patient.gender}",
                f"- Address: {patient.address.one_line()}",
                f"- Phone: {patient.contact.phone}",
            ]
        )

    @staticmethod
    def _age(patient: Patient) -> str:
        return str(patient.age) if patient.age is not None else "unknown"

    @staticmethod
    def _secondary_rule(include_secondary: bool) -> str:
        if include_secondary:
            return "Secondary insurance with similar details and a different provider"
        return "No secondary insurance (set secondaryInsurance to null)"

    # =========================================================================
    # STAGE 2.2: DEMOGRAPHIC PROMPTS
    # =========================================================================

    def patient_prompt(self, options: PatientOptions) -> str:
        prompt = PATIENT_TEMPLATE.format(
            age_min=options.age_min,
            age_max=options.age_max,
            gender=options.gender or "randomly selected",
        )
        return prompt + self.entity_output_format(EntityKind.PATIENT)

    def provider_prompt(self, options: ProviderOptions) -> str:
        prompt = PROVIDER_TEMPLATE.format(
            specialty=options.specialty or "any common outpatient specialty",
            facility_type=options.facility_type,
        )
        return prompt + self.entity_output_format(EntityKind.PROVIDER)

    def insurance_prompt(self, options: InsuranceOptions) -> str:
        """
        Insurance prompt for already-resolved options.

        The subscriber instruction depends on ``patient_is_subscriber``,
        so callers resolve the draw before building the prompt.
        """
        if options.patient_is_subscriber:
            subscriber_rule = (
                "IMPORTANT: Use the EXACT patient information above for subscriber "
                "(name, DOB, gender, address, phone)"
            )
        else:
            subscriber_rule = (
                "Generate DIFFERENT subscriber information (different person from patient)"
            )
        prompt = INSURANCE_TEMPLATE.format(
            patient_section=self.patient_section(options.patient),
            secondary_rule=self._secondary_rule(options.include_secondary),
            subscriber_rule=subscriber_rule,
        )
        return prompt + self.entity_output_format(EntityKind.INSURANCE)

    # =========================================================================
    # STAGE 2.3: DOCUMENT PROMPTS
    # =========================================================================

    def cms1500_prompt(self, options: CMS1500Options) -> str:
        patient = options.patient
        relationship = (
            "self"
            if options.insurance.subscriber_dob == patient.date_of_birth
            else "spouse, child or other"
        )
        prompt = CMS1500_TEMPLATE.format(
            patient_name=f"{patient.first_name} {patient.last_name}",
            date_of_birth=patient.date_of_birth,
            insurer=options.insurance.primary_insurance.provider,
            provider_name=options.provider.name,
            provider_npi=options.provider.npi,
            relationship=relationship,
        )
        return prompt + self.output_format(ClaimInfo.model_json_schema(by_alias=True))

    def insurance_policy_prompt(self, options: InsurancePolicyOptions) -> str:
        prompt = INSURANCE_POLICY_TEMPLATE.format(
            patient_section=self.patient_section(options.patient),
            secondary_rule=self._secondary_rule(options.include_secondary),
        )
        return prompt + self.entity_output_format(EntityKind.INSURANCE)

    # =========================================================================
    # STAGE 2.4: CLINICAL PROMPTS
    # =========================================================================

    def visit_reports_prompt(self, options: VisitReportOptions) -> str:
        patient = options.patient
        prompt = VISIT_REPORTS_TEMPLATE.format(
            count=options.number_of_visits,
            patient_name=f"{patient.first_name} {patient.last_name}",
            age=self._age(patient),
            gender=patient.gender,
            provider_name=options.provider.name,
            specialty=options.provider.specialty,
        )
        return prompt + self.entity_output_format(EntityKind.VISIT_REPORTS)

    def medical_history_prompt(self, options: MedicalHistoryOptions) -> str:
        patient = options.patient
        prompt = MEDICAL_HISTORY_TEMPLATE.format(
            patient_name=f"{patient.first_name} {patient.last_name}",
            age=self._age(patient),
            gender=patient.gender,
            complexity=options.complexity.value,
            complexity_details=COMPLEXITY_DETAILS[options.complexity],
        )
        return prompt + self.entity_output_format(EntityKind.MEDICAL_HISTORY)

    def lab_report_prompt(self, options: LabReportOptions) -> str:
        patient = options.patient
        ordering: Optional[str] = options.provider.name if options.provider else None
        prompt = LAB_REPORT_TEMPLATE.format(
            test_type=options.test_type.value,
            test_details=LAB_TEST_DETAILS[options.test_type],
            patient_name=f"{patient.first_name} {patient.last_name}",
            age=self._age(patient),
            gender=patient.gender,
            ordering_physician=ordering or "any realistic physician",
        )
        return prompt + self.entity_output_format(EntityKind.LAB_REPORT)
