#!/usr/bin/env python3
"""
Streamlit UI for the BadgeFlow card printer.

Upload a roster, photos and an optional logo; review which rows matched a
photo; export the A4 fronts/backs PDFs and the single-card ZIP.
"""

import os
import tempfile
import time
import traceback
import uuid

import pandas as pd
import streamlit as st

import config
from config import PipelineConfig
from errors import BadgeFlowError
from pipeline import export_batch, reconcile_batch, stage_upload
from render import PillowCardRenderer
from storage import LocalStorage, SupabaseStorage, storage_env_problem, storage_from_env

# Startup timing (logged to stdout for Streamlit Cloud logs)
_UI_T0 = time.perf_counter()
def _ui_log(msg: str) -> None:
    print(f"[ui] +{time.perf_counter() - _UI_T0:.3f}s {msg}", flush=True)

_ui_log("ui.py start")

st.set_page_config(page_title="BadgeFlow Card Printer", page_icon="🪪", layout="centered")

st.title("BadgeFlow Card Printer")
st.caption("CR80 85.6×54.0 mm (3.370×2.125 in) cards at 300 DPI, on A4 sheets and as single-card PDFs.")
_ui_log("rendered header")

# Initialize session state
for key, default in (
    ("batch_id", None),
    ("storage_root", None),
    ("roster_path", None),
    ("logo_bytes", None),
    ("reconciliation", None),
    ("artifacts", None),
):
    if key not in st.session_state:
        st.session_state[key] = default


_storage_problem = storage_env_problem()
if _storage_problem:
    st.warning(f"{_storage_problem} Falling back to temporary local storage.")


def _storage():
    """Remote storage from Streamlit secrets or the environment, else a temp folder per session."""
    secrets = {}
    try:
        secrets = dict(st.secrets.get("supabase", {}))  # type: ignore[attr-defined]
    except Exception:
        secrets = {}
    if secrets.get("url") and secrets.get("key"):
        return SupabaseStorage(secrets["url"], secrets["key"], secrets.get("bucket", "orders"))
    if _storage_problem is None and os.environ.get("BADGEFLOW_SUPABASE_URL"):
        return storage_from_env()
    if st.session_state.storage_root is None:
        st.session_state.storage_root = tempfile.mkdtemp(prefix="badgeflow_")
    return LocalStorage(st.session_state.storage_root)


def _reset():
    st.session_state.batch_id = None
    st.session_state.roster_path = None
    st.session_state.logo_bytes = None
    st.session_state.reconciliation = None
    st.session_state.artifacts = None


st.subheader("1. Upload")
with st.form("upload_form", clear_on_submit=False):
    roster_file = st.file_uploader(
        "Roster (CSV or Excel)",
        type=["csv", "tsv", "txt", "xlsx", "xls"],
        help="Needs a photo filename column, e.g. 'photo_filename'. Names: first_name/last_name or name.",
    )
    photo_files = st.file_uploader(
        "Photos", type=["jpg", "jpeg", "png", "webp"], accept_multiple_files=True
    )
    logo_file = st.file_uploader("Logo (optional)", type=["png", "jpg", "jpeg"])
    submitted = st.form_submit_button("📥 Upload and match")

if submitted:
    if roster_file is None:
        st.warning("Please upload a roster first.")
    else:
        _reset()
        try:
            storage = _storage()
            batch_id = uuid.uuid4().hex
            with st.spinner("Uploading files…"):
                staged = stage_upload(
                    storage,
                    batch_id,
                    roster=(roster_file.name, roster_file.getvalue()),
                    photos=[(f.name, f.getvalue()) for f in photo_files or []],
                    logo=(logo_file.name, logo_file.getvalue()) if logo_file is not None else None,
                )
            st.session_state.batch_id = batch_id
            st.session_state.roster_path = staged.roster_path
            st.session_state.logo_bytes = logo_file.getvalue() if logo_file is not None else None
            st.session_state.reconciliation = reconcile_batch(storage, batch_id, staged.roster_path)
        except (BadgeFlowError, ValueError, RuntimeError) as e:
            st.error(f"Could not process the upload: {e}")
        except Exception as e:
            st.error(f"Unexpected error: {e}")
            st.code(traceback.format_exc())

rec = st.session_state.reconciliation
if rec is not None:
    s = rec.summary()
    st.subheader("2. Review")
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Roster rows", s["rosterRows"])
    c2.metric("Matched", s["matched"])
    c3.metric("Missing photo", s["missing"])
    c4.metric("Orphan photos", s["orphans"])
    for w in s["warnings"]:
        st.warning(w)

    tabs = st.tabs(["Matched", "Missing photo", "Orphan photos"])
    with tabs[0]:
        st.dataframe(pd.DataFrame(s["items"]["matched"][: config.MAX_PREVIEW_ROWS]), use_container_width=True)
    with tabs[1]:
        st.dataframe(pd.DataFrame(s["items"]["missing"][: config.MAX_PREVIEW_ROWS]), use_container_width=True)
    with tabs[2]:
        st.dataframe(pd.DataFrame(s["items"]["orphan"][: config.MAX_PREVIEW_ROWS]), use_container_width=True)

    st.subheader("3. Export")
    e1, e2 = st.columns(2)
    with e1:
        company = st.text_input("Company name", value="Company")
        theme = st.selectbox("Theme", options=sorted(config.THEMES), index=sorted(config.THEMES).index(config.DEFAULT_THEME))
    with e2:
        verify_url = st.text_input("QR verification URL (optional)", value="", placeholder="https://…/verify/{person_id}")
        include_missing = st.checkbox("Also print cards for rows without a photo", value=False)
        show_previews = st.checkbox("Show previews", value=True)

    if st.button("🚀 Export cards", type="primary", use_container_width=True):
        cfg = PipelineConfig(
            theme=theme,
            company_name=company.strip() or "Company",
            verify_url_template=verify_url.strip() or None,
            render_missing=include_missing,
            retain_images=show_previews,
        )
        progress_bar = st.progress(0)
        status_text = st.empty()

        def _progress(status: str, done: int, total: int, message: str) -> None:
            progress_bar.progress(done / total if total else 1.0)
            if message:
                status_text.text(message)

        try:
            job, artifacts = export_batch(
                rec,
                PillowCardRenderer(logo=st.session_state.logo_bytes),
                _storage(),
                cfg,
                logo=st.session_state.logo_bytes,
                on_status=_progress,
            )
            st.session_state.artifacts = {
                "artifacts": artifacts,
                "previews": [
                    (e.person.display_name, e.front) for e in job.entries if e.front is not None
                ][: config.PREVIEW_COLUMNS * 3],
            }
        except (BadgeFlowError, ValueError) as e:
            st.error(f"Export failed: {e}")
        except Exception as e:
            st.error(f"Unexpected error during export: {e}")
            st.code(traceback.format_exc())
        finally:
            progress_bar.empty()
            status_text.empty()

out = st.session_state.artifacts
if out is not None:
    a = out["artifacts"]
    st.success(
        f"Export complete ✅  {a.singles_count} single-card PDF(s), "
        f"{a.front_pages} front page(s), {a.back_pages} back page(s)."
    )
    d1, d2, d3 = st.columns(3)
    d1.download_button("⬇️ A4 fronts", data=a.fronts_pdf, file_name=config.FRONTS_PDF_NAME, mime="application/pdf")
    d2.download_button("⬇️ A4 backs", data=a.backs_pdf, file_name=config.BACKS_PDF_NAME, mime="application/pdf")
    d3.download_button("⬇️ Singles ZIP", data=a.singles_zip, file_name=config.SINGLES_ZIP_NAME, mime="application/zip")
    if out["previews"]:
        st.markdown("### Previews")
        items = out["previews"]
        for start in range(0, len(items), config.PREVIEW_COLUMNS):
            cols = st.columns(config.PREVIEW_COLUMNS)
            for c, (name, png) in zip(cols, items[start : start + config.PREVIEW_COLUMNS]):
                with c:
                    st.image(png, width=config.PREVIEW_WIDTH)
                    st.caption(name)
