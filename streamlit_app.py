"""
Streamlit Mortgage Math Walkthrough

A four-step wizard that collects a loan officer's monthly marketing funnel
(spend, leads, speed to lead, conversations, appointments, applications,
funded loans and revenue per loan) and finishes with a report card: cost
per funded loan, return on ad spend, speed-to-lead rate and application
pull-through, each graded excellent/good/poor, followed by a short strategic
diagnosis.  The report can be downloaded as PDF or Excel.

All calculations live in ``mortgage_math``; this script only renders the
current step from ``st.session_state`` and routes button presses and input
edits to the wizard state.

Dependencies:

    pip install streamlit pandas reportlab xlsxwriter

To run locally:

    streamlit run streamlit_app.py

"""

import io
import logging
from typing import Dict, List

import pandas as pd
import streamlit as st
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from mortgage_math import (
    FIELD_LABELS,
    REPORT_STEP,
    WIZARD_STEPS,
    Diagnostic,
    InputRecord,
    MetricCard,
    ResultsRecord,
    Severity,
    Status,
    WizardState,
    build_report_card,
    compute_funnel,
    diagnose,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# "How to track it" / "Why it matters" guides shown under each input.  The
# revenue per loan field has no guide.
METRIC_GUIDES: Dict[str, Dict[str, str]] = {
    "ad_spend": {
        "title": "Total Marketing Investment",
        "how_to": "Aggregate your monthly ad spend (Meta, Google, Zillow) PLUS any agency management "
        "fees or software specifically used for lead gen (e.g., HighLevel, Verse).",
        "why": "If you only track ad spend and not the fees to manage it, your ROI will look artificially high.",
    },
    "leads": {
        "title": "Total Lead Volume",
        "how_to": "This is the 'Raw Lead' count from all sources before any scrubbing. Most CRMs provide "
        "a 'Lead Created Date' report.",
        "why": "This is your baseline. Everything else is a percentage of this number.",
    },
    "speed_to_lead_count": {
        "title": "Speed to Lead (< 5 Mins)",
        "how_to": "Compare the 'Lead Created' timestamp with your first 'Call/Text Outbound' timestamp. "
        "If your CRM doesn't automate this, spot-check 10 leads manually to get an average.",
        "why": "Conversion rates drop by 400% if the lead isn't contacted within 5 minutes.",
    },
    "contacts": {
        "title": "Contact Rate (Conversations)",
        "how_to": "Track every lead where a 'Two-Way Conversation' occurred. A 'No Answer' or "
        "'Voicemail' is NOT a contact.",
        "why": "Low contact rates usually point to poor lead quality or bad caller ID reputation (spam flags).",
    },
    "appts": {
        "title": "Qualified Appointments",
        "how_to": "Log every lead that agreed to a specific time for a strategy call or application. "
        "Use a 'Stage Change' in your CRM called 'Appt Set'.",
        "why": "This measures your (or your LO's) ability to sell the value of the consultation.",
    },
    "apps": {
        "title": "Full Applications",
        "how_to": "Count 1003s submitted. Pull this directly from your LOS (Encompass, MeridianLink, etc.) "
        "for accuracy.",
        "why": "This is the bridge between marketing and manufacturing.",
    },
    "funded": {
        "title": "Funded Loans",
        "how_to": "Final closed/funded units for the month. Cross-reference your LOS with your "
        "commission statements.",
        "why": "The ultimate metric. This is where the math ends.",
    },
}

# Dollar inputs step by 100, counts by 1
MONEY_FIELDS = ("ad_spend", "avg_gos")

STATUS_BOXES = {
    Status.EXCELLENT: st.success,
    Status.GOOD: st.info,
    Status.POOR: st.error,
}

DIAGNOSTIC_BOXES = {
    Severity.WARNING: st.warning,
    Severity.ERROR: st.error,
    Severity.SUCCESS: st.success,
}


def generate_pdf(cards: List[MetricCard], diagnostics: List[Diagnostic], inputs: InputRecord) -> bytes:
    """Generate the report card as a one-page PDF.

    Args:
        cards: Report card entries from ``build_report_card``.
        diagnostics: Diagnostics from ``diagnose``.
        inputs: Funnel inputs the report was computed from.

    Returns:
        PDF data as bytes.
    """
    buffer = io.BytesIO()
    c = canvas.Canvas(buffer, pagesize=letter)
    width, height = letter
    margin = 50
    line_height = 16

    def write_lines(lines, y_start):
        y = y_start
        for line in lines:
            if y < margin:
                c.showPage()
                c.setFont("Helvetica", 10)
                y = height - margin
            c.drawString(margin, y, line)
            y -= line_height
        return y

    y = height - margin
    c.setFont("Helvetica-Bold", 16)
    c.drawString(margin, y, "Marketing Report Card")
    y -= line_height * 2
    c.setFont("Helvetica-Bold", 12)
    c.drawString(margin, y, "Inputs")
    y -= line_height
    c.setFont("Helvetica", 10)
    y = write_lines([f"{FIELD_LABELS[name]}: {value:,.2f}" for name, value in inputs.to_dict().items()], y)
    y -= line_height
    c.setFont("Helvetica-Bold", 12)
    c.drawString(margin, y, "Metrics")
    y -= line_height
    c.setFont("Helvetica", 10)
    y = write_lines(
        [f"{card.label}: {card.value} ({card.status.value}) - {card.target}" for card in cards], y
    )
    y -= line_height
    c.setFont("Helvetica-Bold", 12)
    c.drawString(margin, y, "Strategic Diagnosis")
    y -= line_height
    c.setFont("Helvetica", 10)
    if diagnostics:
        # Long messages are wrapped at roughly 95 characters per line
        lines = []
        for diagnostic in diagnostics:
            words = diagnostic.message.split()
            current = "-"
            for word in words:
                if len(current) + len(word) + 1 > 95:
                    lines.append(current)
                    current = " "
                current = f"{current} {word}"
            lines.append(current)
        write_lines(lines, y)
    else:
        write_lines(["No issues flagged."], y)
    c.showPage()
    c.save()
    pdf_bytes = buffer.getvalue()
    buffer.close()
    return pdf_bytes


def generate_excel(inputs: InputRecord, results: ResultsRecord) -> bytes:
    """Generate an Excel workbook with the report card, inputs and funnel.

    Args:
        inputs: Funnel inputs.
        results: Metrics derived from ``inputs``.

    Returns:
        Excel file as bytes.
    """
    buffer = io.BytesIO()
    df_cards = pd.DataFrame(
        [
            {"Metric": card.label, "Value": card.value, "Target": card.target, "Status": card.status.value}
            for card in build_report_card(results)
        ]
    )
    df_inputs = pd.DataFrame(
        [(FIELD_LABELS[name], value) for name, value in inputs.to_dict().items()],
        columns=["Input", "Value"],
    )
    with pd.ExcelWriter(buffer, engine="xlsxwriter") as writer:
        df_cards.to_excel(writer, index=False, sheet_name="Report Card")
        df_inputs.to_excel(writer, index=False, sheet_name="Inputs")
        compute_funnel(inputs).to_excel(writer, index=False, sheet_name="Funnel")
    return buffer.getvalue()


def init_state():
    """Initialize session state variables if they do not exist."""
    defaults = {
        "wizard": WizardState(),
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value


def get_wizard() -> WizardState:
    return st.session_state["wizard"]


def render_step_index(wizard: WizardState) -> None:
    """Render the progress bar across the four input steps and the report."""
    total = REPORT_STEP + 1
    label = "Report" if wizard.is_report else f"Step {wizard.step + 1} of {REPORT_STEP}"
    st.progress((wizard.step + 1) / total, text=label)


def render_field(wizard: WizardState, name: str) -> None:
    """Render one numeric input with its tracking guide and store edits."""
    current = getattr(wizard.inputs, name)
    value = st.number_input(
        FIELD_LABELS[name],
        value=float(current),
        step=100.0 if name in MONEY_FIELDS else 1.0,
        key=f"input_{name}",
    )
    if value != current:
        wizard.set_field(name, value)
    guide = METRIC_GUIDES.get(name)
    if guide:
        with st.expander("How to track?"):
            st.markdown(f"**{guide['title']}**")
            st.markdown(f"**How to track it:** {guide['how_to']}")
            st.markdown(f"**Why it matters:** {guide['why']}")


def wizard_step(wizard: WizardState) -> None:
    """Steps 1-4: collect the fields belonging to the current step."""
    page = WIZARD_STEPS[wizard.step]
    st.header(page.title)
    st.markdown(page.description)
    for name in wizard.current_fields():
        render_field(wizard, name)
    # Navigation
    col1, col2 = st.columns([1, 2])
    with col1:
        if wizard.step > 0 and st.button("◂ Back", key="back"):
            wizard.back()
            st.rerun()
    with col2:
        label = "Generate Report ▸" if wizard.step == REPORT_STEP - 1 else "Next Step ▸"
        if st.button(label, key="next", type="primary"):
            wizard.next()
            st.rerun()


def wizard_report(wizard: WizardState) -> None:
    """Step 5: report card, diagnosis, funnel and downloads."""
    st.header("Marketing Report Card")
    st.markdown("Here is the efficiency of your current machine.")
    results = wizard.results
    cards = build_report_card(results)
    cols = st.columns(2)
    for idx, card in enumerate(cards):
        with cols[idx % 2]:
            STATUS_BOXES[card.status](f"**{card.label}**\n\n### {card.value}\n\n{card.target}")

    st.subheader("Strategic Diagnosis")
    diagnostics = diagnose(results)
    for diagnostic in diagnostics:
        DIAGNOSTIC_BOXES[diagnostic.severity](f"**{diagnostic.headline}:** {diagnostic.message}")

    st.subheader("Funnel Breakdown")
    df_funnel = compute_funnel(wizard.inputs)
    st.dataframe(
        df_funnel.style.format(
            {
                "Count": "{:,.0f}",
                "% of Leads": "{:.1f}%",
                "Stage Conversion (%)": "{:.1f}%",
            }
        ),
        width="stretch",
        hide_index=True,
    )
    st.bar_chart(df_funnel.set_index("Stage")["Count"])

    try:
        pdf_data = generate_pdf(cards, diagnostics, wizard.inputs)
        excel_data = generate_excel(wizard.inputs, results)
    except Exception:
        logger.exception("Failed to build report downloads")
        st.error("Could not build the report downloads.")
    else:
        col1, col2 = st.columns([1, 1])
        with col1:
            st.download_button(
                label="Download PDF",
                data=pdf_data,
                file_name="marketing_report_card.pdf",
                mime="application/pdf",
                key="download_pdf",
            )
        with col2:
            st.download_button(
                label="Download Excel",
                data=excel_data,
                file_name="marketing_report_card.xlsx",
                mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
                key="download_excel",
            )

    if st.button("Restart Audit", key="restart"):
        wizard.restart()
        st.rerun()


def main():
    st.set_page_config(page_title="Mortgage Math Walkthrough", page_icon="📈", layout="centered")
    init_state()
    wizard = get_wizard()
    st.caption("MARKETING EFFICIENCY AUDIT")
    st.title("The Mortgage Math Walkthrough")
    st.markdown("If you don't know your numbers, you don't have a business.")
    render_step_index(wizard)
    if wizard.is_report:
        wizard_report(wizard)
    else:
        wizard_step(wizard)
    st.info(
        "**Pro Tip:** 2025 data shows that brokers who use a CRM with automated **\"Speed to Lead\"** "
        "tracking convert 3x more purchase business than those who track manually."
    )


if __name__ == "__main__":
    main()
