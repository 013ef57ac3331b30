"""
FloraBatch Streamlit UI
Upload a set of images, watch them being identified, download the CSV report.
"""

import streamlit as st

from florabatch.analysis_client import GeminiFlowerClient
from florabatch.config import settings
from florabatch.export import build_csv, completed_results, export_filename
from florabatch.models import BatchSnapshot, SourceImage
from florabatch.pipeline import BatchPipeline
from florabatch.previews import PreviewStore
from florabatch.uploader import ACCEPTED_MIME_TYPES, NoValidImagesError, filter_images
from florabatch.view import build_rows, format_progress

# --- Page Config ---
st.set_page_config(
    page_title="FloraBatch",
    page_icon="🌸",
    layout="wide",
)

UPLOAD_EXTENSIONS = ["jpg", "jpeg", "png", "gif", "webp", "bmp"]


def get_pipeline() -> BatchPipeline:
    """One pipeline per browser session."""
    if "pipeline" not in st.session_state:
        client = GeminiFlowerClient.from_settings(settings)
        st.session_state.pipeline = BatchPipeline(
            client, PreviewStore(max_size=settings.preview_max_size)
        )
        st.session_state.uploader_key = 0
    return st.session_state.pipeline


def render_progress(container, snapshot: BatchSnapshot) -> None:
    summary = snapshot.summary
    with container.container():
        st.subheader("Batch Progress")
        if snapshot.is_processing:
            st.caption("🔄 Processing")
        else:
            st.caption("✅ Completed")
        st.progress(min(summary.progress / 100, 1.0))
        st.write(format_progress(summary))

        col1, col2 = st.columns(2)
        col1.metric("Identified", summary.success)
        col2.metric("Failed", summary.failed)


def render_table(container, snapshot: BatchSnapshot, previews: PreviewStore) -> None:
    with container.container():
        st.subheader("Analysis Results")
        header = st.columns([1, 1, 3, 2, 2])
        for col, title in zip(header, ["Status", "Preview", "File", "Flower", "Region"]):
            col.markdown(f"**{title}**")

        for row in build_rows(snapshot.items):
            cols = st.columns([1, 1, 3, 2, 2])
            cols[0].write(row["icon"])
            preview = previews.get(row["preview_url"])
            if preview:
                cols[1].image(preview, width=48)
            else:
                cols[1].write("🖼️")
            cols[2].write(row["file_name"])
            if row["error"]:
                cols[3].caption(f"⚠️ {row['error'][:80]}")
            else:
                cols[3].write(row["flower_name"])
            cols[4].write(row["geographic_area"])


pipeline = get_pipeline()

# --- Header ---
st.title("🌸 FloraBatch")
st.caption(f"Automated flower identification, powered by {settings.gemini_model}")

if not settings.gemini_api_key:
    st.error("GEMINI_API_KEY is not set. Add it to your environment or .env file.")
    st.stop()

snapshot = pipeline.snapshot()

# --- Uploader ---
if not snapshot.items:
    st.write(
        "Upload an entire folder of images. Each image is identified in turn: "
        "species, native region and a confidence score, exportable as a spreadsheet."
    )
    uploads = st.file_uploader(
        "Select images",
        type=UPLOAD_EXTENSIONS,
        accept_multiple_files=True,
        key=f"uploader_{st.session_state.uploader_key}",
    )
    if st.button("🔍 Analyze", disabled=not uploads, use_container_width=True):
        files = [
            SourceImage(name=u.name, mime_type=u.type or "", content=u.getvalue())
            for u in uploads
        ]
        try:
            selection = filter_images(files)
        except NoValidImagesError:
            st.warning(
                "No valid image files found in the selection. "
                f"Supported types: {', '.join(ACCEPTED_MIME_TYPES)}"
            )
            st.stop()

        if selection.skipped:
            st.info(
                "Skipped unsupported files: "
                + ", ".join(f.name for f in selection.skipped)
            )
        snapshot = pipeline.start(selection.accepted)

# --- Dashboard ---
if snapshot.items:
    left, right = st.columns([1, 2])
    with left:
        progress_slot = st.empty()
        actions_slot = st.empty()
    with right:
        table_slot = st.empty()

    render_progress(progress_slot, snapshot)
    render_table(table_slot, snapshot, pipeline.previews)

    if pipeline.is_processing:

        def on_change(update: BatchSnapshot) -> None:
            render_progress(progress_slot, update)
            render_table(table_slot, update, pipeline.previews)

        unsubscribe = pipeline.subscribe(on_change)
        try:
            pipeline.run()
        finally:
            unsubscribe()
        st.rerun()

    with actions_slot.container():
        results = completed_results(snapshot.items)
        if results:
            st.download_button(
                "📄 Download CSV Report",
                data=build_csv(results),
                file_name=export_filename(),
                mime="text/csv",
                use_container_width=True,
            )
        if st.button("Start New Batch", use_container_width=True):
            pipeline.reset()
            st.session_state.uploader_key += 1
            st.rerun()
