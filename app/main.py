"""
Streamlit Frontend for Invoice Ledger

A single-page ledger: filters and KPIs on top, the invoice table,
charts by category and by month, and backup/restore in the sidebar.

The UI holds no invoice state of its own. Every action goes through
InvoiceLedger, which reloads its cache after each write.
"""

import asyncio
from datetime import date

import pandas as pd
import streamlit as st

from ledger.config import get_settings
from ledger.models.invoice import Invoice, InvoiceFilter, InvoiceType
from ledger.orchestrator import create_ledger
from ledger.queries import format_currency, format_short, unreadable_date_notice
from ledger.services.backup import ImportFormatError
from ledger.services.storage import StorageError
from ledger.validation import InvoiceValidationError


st.set_page_config(
    page_title="Invoice Ledger",
    page_icon="🧾",
    layout="wide",
    initial_sidebar_state="expanded",
)

DARK_CSS = """
<style>
    .stApp, [data-testid="stSidebar"] {
        background-color: #0f172a;
        color: #e2e8f0;
    }
</style>
"""


@st.cache_resource
def get_event_loop() -> asyncio.AbstractEventLoop:
    """One loop for the session; the database engine is bound to it."""
    return asyncio.new_event_loop()


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    return get_event_loop().run_until_complete(coro)


@st.cache_resource
def get_components():
    """Open the store once per server process."""
    return run_async(create_ledger())


def render_sidebar(ledger, preferences) -> None:
    st.sidebar.title("🧾 Invoice Ledger")
    st.sidebar.caption(f"Storage: {ledger.backend_name}")
    st.sidebar.markdown("---")

    st.sidebar.markdown("### Settings")
    withholding = st.sidebar.number_input(
        "Income tax withholding (%)",
        min_value=0.0,
        max_value=100.0,
        value=float(preferences.withholding_pct),
        step=0.5,
    )
    if withholding != preferences.withholding_pct:
        preferences.withholding_pct = withholding

    dark = st.sidebar.toggle("Dark theme", value=preferences.dark_theme)
    if dark != preferences.dark_theme:
        preferences.dark_theme = dark
    if dark:
        st.markdown(DARK_CSS, unsafe_allow_html=True)

    st.sidebar.markdown("---")
    st.sidebar.markdown("### Backup")
    st.sidebar.download_button(
        "Export JSON",
        data=ledger.export_json(),
        file_name="invoices_backup.json",
        mime="application/json",
    )
    st.sidebar.download_button(
        "Export CSV",
        data=ledger.export_csv(),
        file_name="invoices.csv",
        mime="text/csv",
    )

    uploaded = st.sidebar.file_uploader("Restore from backup", type=["json", "csv"])
    if uploaded is not None:
        st.sidebar.warning("This replaces all current invoices.")
        if st.sidebar.button("Restore"):
            text = uploaded.getvalue().decode("utf-8")
            try:
                if uploaded.name.lower().endswith(".csv"):
                    count = run_async(ledger.import_csv(text))
                else:
                    count = run_async(ledger.import_json(text))
                st.sidebar.success(f"Restored {count} invoices")
            except (ImportFormatError, StorageError) as e:
                st.sidebar.error(f"Could not import the file: {e}")


def render_filters() -> InvoiceFilter:
    col1, col2, col3, col4 = st.columns(4)
    with col1:
        invoice_type = st.selectbox(
            "Type",
            options=[None, InvoiceType.ISSUED, InvoiceType.RECEIVED],
            format_func=lambda x: "All" if x is None else x.value.title(),
        )
        include_archived = st.checkbox("Include archived")
    with col2:
        category = st.text_input("Category")
    with col3:
        date_from = st.date_input("From", value=None)
        date_to = st.date_input("To", value=None)
    with col4:
        search = st.text_input("Search")

    return InvoiceFilter(
        type=invoice_type,
        category=category,
        date_from=date_from,
        date_to=date_to,
        include_archived=include_archived,
        search=search,
    )


def render_kpis(view) -> None:
    totals = view.totals
    cols = st.columns(5)
    cols[0].metric("Issued", format_currency(totals.total_issued), f"{totals.count_issued} invoices")
    cols[1].metric("Received", format_currency(totals.total_received), f"{totals.count_received} invoices")
    cols[2].metric("Profit", format_currency(totals.profit))
    cols[3].metric("VAT balance", format_currency(totals.tax_balance))
    cols[4].metric("Withholding", format_currency(totals.withholding))


def render_table(ledger, view) -> None:
    st.markdown(f"**{len(view.invoices)} invoices**")
    if not view.invoices:
        st.info("No invoices match the current filters.")
        return

    rows = [
        {
            "Number": invoice.number,
            "Date": invoice.date,
            "Type": invoice.type.value.title(),
            "Entity": invoice.entity,
            "Concept": invoice.concept,
            "Base": format_currency(invoice.base),
            "VAT %": f"{invoice.tax_pct:.2f}",
            "VAT": format_currency(invoice.tax),
            "Total": format_currency(invoice.total),
            "Payment": invoice.payment,
            "Category": invoice.category,
            "PDF": invoice.pdf_path,
            "Archived": "✔︎" if invoice.archived else "",
        }
        for invoice in view.invoices
    ]
    st.dataframe(pd.DataFrame(rows), use_container_width=True, hide_index=True)

    labels = {invoice.id: f"{invoice.number} · {invoice.entity}" for invoice in view.invoices}
    selected = st.selectbox("Selected invoice", options=list(labels), format_func=labels.get)
    col1, col2, col3 = st.columns(3)
    invoice = ledger.get(selected)
    if col1.button("Edit"):
        st.session_state["editing_id"] = selected
    if col2.button("Unarchive" if invoice and invoice.archived else "Archive"):
        try:
            run_async(ledger.toggle_archived(selected))
            st.rerun()
        except StorageError as e:
            st.error(f"Failed to save: {e}")
    if col3.button("Delete"):
        try:
            run_async(ledger.delete_invoice(selected))
            st.session_state.pop("editing_id", None)
            st.rerun()
        except StorageError as e:
            st.error(f"Failed to delete: {e}")


def render_charts(view) -> None:
    col1, col2 = st.columns(2)
    for column, title, grouped in (
        (col1, "By category", view.by_category),
        (col2, "By month", view.by_month),
    ):
        with column:
            st.markdown(f"#### {title}")
            if grouped.labels:
                st.caption(
                    f"Issued {format_short(sum(grouped.issued))} · "
                    f"Received {format_short(sum(grouped.received))}"
                )
                frame = pd.DataFrame(
                    {"Issued": grouped.issued, "Received": grouped.received},
                    index=grouped.labels,
                )
                st.bar_chart(frame)


def render_form(ledger) -> None:
    settings = get_settings().app
    editing = ledger.get(st.session_state.get("editing_id", ""))
    st.markdown("### Edit invoice" if editing else "### New invoice")

    with st.form("invoice_form", clear_on_submit=editing is None):
        col1, col2, col3 = st.columns(3)
        with col1:
            number = st.text_input("Number", value=editing.number if editing else "")
            invoice_date = st.date_input(
                "Date",
                value=(editing.parsed_date if editing else None) or date.today(),
            )
            notice = unreadable_date_notice(editing) if editing else None
            if notice:
                st.caption(notice)
            invoice_type = st.selectbox(
                "Type",
                options=list(InvoiceType),
                index=list(InvoiceType).index(editing.type) if editing else 0,
                format_func=lambda x: x.value.title(),
            )
            entity = st.text_input("Client / supplier", value=editing.entity if editing else "")
        with col2:
            concept = st.text_input("Concept", value=editing.concept if editing else "")
            base = st.number_input("Base", value=editing.base if editing else 0.0, step=0.01)
            tax_pct = st.number_input(
                "VAT %",
                value=editing.tax_pct if editing else settings.default_tax_pct,
                step=1.0,
            )
            st.caption(f"Total: {format_currency(base * (1 + tax_pct / 100))}")
        with col3:
            payment = st.text_input("Payment method", value=editing.payment if editing else "")
            category = st.text_input("Category", value=editing.category if editing else "")
            pdf_path = st.text_input("PDF location", value=editing.pdf_path if editing else "")
            archived = st.checkbox("Archived", value=editing.archived if editing else False)
        notes = st.text_area("Notes", value=editing.notes if editing else "")

        submitted = st.form_submit_button("Save")

    if editing and st.button("Cancel edit"):
        st.session_state.pop("editing_id", None)
        st.rerun()

    if not submitted:
        return

    fields = dict(
        number=number,
        date=invoice_date.isoformat() if invoice_date else "",
        type=invoice_type,
        entity=entity,
        concept=concept,
        base=base,
        tax_pct=tax_pct,
        payment=payment,
        category=category,
        notes=notes,
        pdf_path=pdf_path,
        archived=archived,
    )
    invoice = Invoice(id=editing.id, **fields) if editing else Invoice(**fields)

    try:
        run_async(ledger.save_invoice(invoice))
        st.session_state.pop("editing_id", None)
        st.success("Invoice saved")
        st.rerun()
    except InvoiceValidationError as e:
        st.error(str(e))
    except StorageError as e:
        st.error(f"Failed to save: {e}")


def main():
    """Main application entry point."""
    try:
        ledger, preferences = get_components()
    except StorageError as e:
        st.error(f"Failed to initialize: {e}")
        return

    render_sidebar(ledger, preferences)

    st.title("Invoices")
    criteria = render_filters()
    view = ledger.view(criteria, withholding_pct=preferences.withholding_pct)

    render_kpis(view)
    st.markdown("---")
    render_table(ledger, view)
    st.markdown("---")
    render_charts(view)
    st.markdown("---")
    render_form(ledger)


if __name__ == "__main__":
    main()
