import io
from contextlib import contextmanager
from datetime import date
from typing import List, Optional

import altair as alt
import pandas as pd
import streamlit as st

from core.data import ACCEPTED_EXTENSIONS, load_sheet, zones_frame
from core.errors import EmptyResultError, SheetImportError
from core.filters import normalize_filters
from core.metrics_debug import compute_import_debug
from core.metrics_overview import compute_overview
from core.metrics_receipts import PdfReceipt, apply_receipts, compute_receipts, pending_receipts, update_applied_ids
from core.metrics_zone import STATUS_GOOD, STATUS_WARNING, compute_zone_detail
from core.models import OriginZone

alt.data_transformers.disable_max_rows()


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #262626;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #737373;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;}
        .card {border: 1px solid #262626;border-radius: 12px;padding: 16px;margin-bottom: 12px;}
        .card-header {display: flex;justify-content: space-between;align-items: center;margin-bottom: 8px;}
        .card-title {font-weight: 600;font-size: 1.0rem;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {border: 1px solid #404040;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #22D3EE;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str, actions: Optional[str] = None):
    container = st.container()
    container.markdown(
        f"""
        <div class="card">
          <div class="card-header">
            <div class="card-title">{title}</div>
            <div class="card-actions">{actions or ""}</div>
          </div>
        """,
        unsafe_allow_html=True,
    )
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_currency(value: float) -> str:
    text = f"{float(value):,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return f"R$ {text}"


def format_signed(value: float) -> str:
    return f"+{value:,.0f}" if value > 0 else f"{value:,.0f}"


def format_filter_summary(mode: str, threshold: float, formatted_date: str, current_day: int, total_days: int) -> str:
    chips = [
        f"Modo: {mode} ({threshold:.0%})",
        f"{formatted_date} (Dia {current_day}/{total_days})",
    ]
    return "".join([f"<span class='chip'>{txt}</span>" for txt in chips])


def render_page_header(title: str, breadcrumb: str, filter_summary_html: str = "", export_df: Optional[pd.DataFrame] = None, export_name: str = "export.csv"):
    inject_base_styles()
    c1, c2 = st.columns([8, 2])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>{breadcrumb}</div><div class='page-title'>{title}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        if export_df is not None and not export_df.empty:
            st.download_button(
                "Export CSV",
                data=export_df.to_csv(index=False).encode("utf-8"),
                file_name=export_name,
                mime="text/csv",
            )
    if filter_summary_html:
        st.markdown(f"<div class='chip-row'>{filter_summary_html}</div>", unsafe_allow_html=True)


# ---------- UI setup ----------
st.set_page_config(page_title="Circuit Contract Dashboard", layout="wide")
inject_base_styles()
st.title("Circuit Contract Dashboard")
st.caption("Contracted vs. realized volume per origin zone, paced to the current day of the month.")

zones: List[OriginZone] = st.session_state.get("zones", [])

with st.sidebar:
    st.markdown("### Navigate")
    zone_names = [z.name for z in zones]
    nav_choice = st.radio("Navigate", ["Overview", "Zone Detail", "Import", "Receipts", "Data Quality"], index=0 if zones else 2)
    selected_zone_name = None
    if nav_choice == "Zone Detail" and zone_names:
        selected_zone_name = st.selectbox("Zone", zone_names)

    st.markdown("---")
    st.markdown("### Compliance")
    mode_label = st.radio("Target", ["Bonificação (90%)", "GIF (95%)"], index=0)
    reference_date = st.date_input("Reference date", value=date.today())

    with st.expander("Advanced settings", expanded=False):
        bonus_threshold = st.slider("Bonus threshold", 0.5, 1.0, 0.90, 0.01)
        gif_threshold = st.slider("GIF threshold", 0.5, 1.0, 0.95, 0.01)
        route_min = st.slider("Route minimum ratio", 0.0, 1.0, 0.40, 0.05)

filters = normalize_filters(
    {
        "mode": "GIF" if mode_label.startswith("GIF") else "BONUS",
        "reference_date": reference_date,
        "thresholds": {"bonus": bonus_threshold, "gif": gif_threshold, "route_min": route_min},
    }
)


# ---------- Pages ----------
def render_import_page():
    render_page_header("Importação de Contratos", "Import")
    st.write("Carregue a planilha de metas de contrato. Duplicatas de circuito são ignoradas automaticamente.")
    upload = st.file_uploader("Planilha", type=[ext.lstrip(".") for ext in ACCEPTED_EXTENSIONS])
    if upload is None:
        with card("Colunas mapeadas"):
            st.markdown("`Nº Circuito` · `ORIGEM` · `DESTINO` · `PROGRAMADOR` · `META` · `REALIZADO`")
        return
    try:
        result = load_sheet(upload.getvalue(), upload.name)
    except EmptyResultError as exc:
        st.error(f"Nenhum dado válido encontrado ({exc.duplicate_row_count} duplicadas ignoradas).")
        return
    except SheetImportError as exc:
        st.error(f"Erro ao ler planilha: {exc}")
        return

    st.session_state["zones"] = result.zones
    st.session_state["import_result"] = result
    st.session_state["applied_receipt_ids"] = []
    st.success(f"Planilha processada: {result.valid_row_count} circuitos únicos em {len(result.zones)} zonas.")
    if result.duplicate_row_count:
        st.warning(f"{result.duplicate_row_count} linhas duplicadas foram ignoradas.")


def render_overview_page():
    payload = compute_overview(filters, zones)
    d = payload["date"]
    render_page_header(
        "Visão Geral de Metas",
        "Overview",
        format_filter_summary(payload["mode"], payload["threshold"], d["formatted_date"], d["current_day"], d["total_days"]),
        export_df=pd.DataFrame(payload["table"]),
        export_name="overview.csv",
    )
    st.progress(min(d["factor"], 1.0), text=f"Progresso temporal: {d['progress_pct']:.1f}%")

    health = payload["route_health"]
    if health["below"] > 0:
        st.warning(f"Existem {health['below']} rotas operando abaixo de {filters.thresholds.route_min:.0%} no total da rede.")
    else:
        st.info(f"Todas as rotas estão acima do gatilho mínimo de {filters.thresholds.route_min:.0%}.")

    kpis = payload["kpis"]
    c1, c2, c3 = st.columns(3)
    c1.metric("Meta hoje", f"{kpis['proportional_min']:,}", help=f"Meta final: {kpis['min_target']:,}")
    c2.metric("Realizado", f"{kpis['realized']:,.0f}")
    c3.metric("Saldo", format_signed(kpis["gap"]))
    c4, c5, c6 = st.columns(3)
    c4.metric("Rotas saudáveis", health["above"])
    c5.metric("Rotas críticas", health["below"])
    if filters.mode == "BONUS":
        c6.metric("Bônus estimado", format_currency(kpis["bonus"]))
    else:
        c6.metric("Aderência", f"{kpis['adherence']:.1f}%")

    with card("Metas por zona"):
        table = pd.DataFrame(payload["table"])
        if not table.empty:
            st.dataframe(
                table[["name", "programmer", "contracted", "min_target", "proportional_min", "realized", "gap", "adherence", "status"]],
                use_container_width=True,
                hide_index=True,
            )
    chart = payload["charts"].get("realized_vs_target")
    if chart:
        with card("Realizado vs meta de hoje"):
            st.vega_lite_chart(chart, use_container_width=True)


def render_zone_detail_page():
    zone = next((z for z in zones if z.name == selected_zone_name), None)
    if zone is None:
        st.info("Selecione uma zona.")
        return
    payload = compute_zone_detail(filters, zone)
    routes = pd.DataFrame(payload["routes"])
    render_page_header(zone.name, "Zone Detail", export_df=routes, export_name=f"{zone.id}.csv")
    st.caption(f"Programador: {zone.programmer}")
    if payload["status"] == STATUS_WARNING:
        st.warning(
            f"Esta zona possui {payload['failing_routes_count']} rota(s) operando abaixo de {filters.thresholds.route_min:.0%}."
        )
    elif payload["status"] == STATUS_GOOD:
        st.success("Alta performance")

    c1, c2, c3 = st.columns(3)
    c1.metric("Rotas", payload["total_routes"])
    c2.metric("Abaixo do mínimo", payload["failing_routes_count"])
    c3.metric("Saúde", f"{payload['health_percentage']:.0f}%")
    if not routes.empty:
        st.dataframe(routes, use_container_width=True, hide_index=True)
    chart = payload["charts"].get("routes")
    if chart:
        st.vega_lite_chart(chart, use_container_width=True)


def _receipts_from_frame(df: pd.DataFrame) -> List[PdfReceipt]:
    df = df.rename(columns=lambda c: str(c).strip().lower())
    receipts = []
    for i, row in enumerate(df.fillna("").to_dict(orient="records")):
        receipts.append(
            PdfReceipt(
                id=str(row.get("id") or i),
                file_name=str(row.get("file_name", "")),
                extraction_id=str(row.get("extraction_id", "")),
                extracted_origin_city=str(row.get("extracted_origin_city", "")),
                extracted_destination=str(row.get("extracted_destination", "")),
                mapped_zone_id=str(row.get("mapped_zone_id") or "") or None,
                is_duplicate=str(row.get("is_duplicate", "")).strip().lower() in {"1", "true", "yes", "sim"},
            )
        )
    return receipts


def render_receipts_page():
    render_page_header("Comprovantes", "Receipts")
    upload = st.file_uploader("Registros extraídos (CSV)", type=["csv"], key="receipts_upload")
    if upload is not None:
        st.session_state["receipts"] = _receipts_from_frame(pd.read_csv(io.BytesIO(upload.getvalue()), dtype=str))
    receipts: List[PdfReceipt] = st.session_state.get("receipts", [])
    q = st.text_input("Filtrar", "")
    payload = compute_receipts(receipts, q=q)
    c1, c2, c3 = st.columns(3)
    c1.metric("Total importados", payload["kpis"]["total_uploads"])
    c2.metric("Carregamentos válidos", payload["kpis"]["valid_loads"])
    c3.metric("Duplicidades", payload["kpis"]["duplicates"])
    if payload["table"]:
        st.dataframe(pd.DataFrame(payload["table"]), use_container_width=True, hide_index=True)
    applied_ids = st.session_state.get("applied_receipt_ids", [])
    pending = pending_receipts(receipts, applied_ids)
    st.caption(f"{len(applied_ids)} comprovantes já aplicados, {len(pending)} pendentes.")
    if pending and zones and st.button("Aplicar ao realizado"):
        updated, changed = apply_receipts(zones, receipts, applied_ids=applied_ids)
        st.session_state["zones"] = updated
        st.session_state["applied_receipt_ids"] = update_applied_ids(applied_ids, changed)
        st.success(f"{len(changed)} carregamentos aplicados.")
    if applied_ids and zones and st.button("Remover do realizado"):
        updated, changed = apply_receipts(zones, receipts, sign=-1, applied_ids=applied_ids)
        st.session_state["zones"] = updated
        st.session_state["applied_receipt_ids"] = update_applied_ids(applied_ids, changed, sign=-1)
        st.success(f"{len(changed)} carregamentos removidos.")


def render_debug_page():
    render_page_header("Data Quality / Debug", "Data Quality")
    result = st.session_state.get("import_result")
    if result is None:
        st.info("Nenhuma planilha importada nesta sessão.")
        return
    payload = compute_import_debug(result)
    st.json({"row_counts": payload["row_counts"], "columns": payload["columns"], "header_found": payload["header_found"]})
    if payload["zone_routes"]:
        st.dataframe(pd.DataFrame(payload["zone_routes"]), use_container_width=True, hide_index=True)
    if payload["unassigned_zones"]:
        st.warning("Zonas sem programador: " + ", ".join(payload["unassigned_zones"]))
    if payload["zero_contract_routes"]:
        st.dataframe(pd.DataFrame(payload["zero_contract_routes"]), use_container_width=True, hide_index=True)
    st.download_button(
        "Export routes",
        data=zones_frame(st.session_state.get("zones", [])).to_csv(index=False).encode("utf-8"),
        file_name="routes.csv",
        mime="text/csv",
    )


if nav_choice == "Import":
    render_import_page()
elif not zones:
    st.info("Importe uma planilha de contratos para começar.")
elif nav_choice == "Overview":
    render_overview_page()
elif nav_choice == "Zone Detail":
    render_zone_detail_page()
elif nav_choice == "Receipts":
    render_receipts_page()
else:
    render_debug_page()
