import gradio as gr

from api_composer.log import setup_logging
from api_composer.handlers_mapping import (
    MAPPING_HEADERS,
    export_mapping_handler,
    handle_root_change,
    import_schema_handler,
    load_sample_handler,
    preview_mapping_handler,
    synthesize_schema_handler,
)
from api_composer.handlers_join import (
    handle_child_upload,
    handle_parent_upload,
    handle_root_change as handle_join_root_change,
    join_datasets_handler,
)

setup_logging()

# --- UI Definition ---
with gr.Blocks(title="API Composer") as demo:
    gr.Markdown("# API Composer")
    gr.Markdown("Catalogue sample JSON, design an output schema, bind fields with transformations, and join sources.")

    # State
    sample_state = gr.State()
    parent_data_state = gr.State()
    child_data_state = gr.State()

    with gr.Tab("Map Fields"):
        with gr.Row():
            # Left Panel: Sample & Catalogue
            with gr.Column(scale=1):
                gr.Markdown("### 1. Sample")
                file_input = gr.File(label="Upload sample JSON", file_types=[".json"])
                status_msg = gr.Textbox(label="Status", interactive=False)
                root_path_selector = gr.Dropdown(
                    label="Record Root Path",
                    choices=["(root)"],
                    value="(root)",
                    allow_custom_value=True,
                    interactive=True,
                )
                record_count = gr.Textbox(label="Record Count", interactive=False)

                gr.Markdown("### 2. Catalogue")
                catalogue_table = gr.Dataframe(
                    headers=["Path", "Type", "Sample"],
                    datatype=["str", "str", "str"],
                    interactive=False,
                    label="Source Paths",
                )

            # Right Panel: Schema & Mapping
            with gr.Column(scale=1):
                gr.Markdown("### 3. Output Schema")
                output_format = gr.Radio(choices=["JSON", "XML", "CSV", "RSS", "Atom"], value="JSON", label="Output Format")
                generate_btn = gr.Button("Generate Schema")
                schema_file = gr.File(label="Or import OpenAPI / Swagger / JSON Schema", file_types=[".json", ".yaml", ".yml"])
                schema_view = gr.JSON(label="Schema")

                gr.Markdown("### 4. Field Mapping")
                gr.Markdown("Transformations are a comma-separated list of step kinds, e.g. `trim, uppercase`.")
                mapping_table = gr.Dataframe(
                    headers=MAPPING_HEADERS,
                    datatype=["str", "str", "str", "str"],
                    col_count=(4, "fixed"),
                    interactive=True,
                    label="Bindings",
                )

                gr.Markdown("### 5. Preview & Export")
                export_format = gr.Radio(choices=["CSV", "JSON"], value="JSON", label="Export Format")
                output_filename = gr.Textbox(label="Output Filename (optional)", placeholder="output")
                preview_btn = gr.Button("Preview")
                export_btn = gr.Button("Export", variant="primary")
                mapping_messages = gr.Textbox(label="Messages", interactive=False)
                download_output = gr.File(label="Download Result")
                preview_view = gr.JSON(label="Preview (first 3 records)")

        file_input.upload(
            fn=load_sample_handler,
            inputs=[file_input],
            outputs=[sample_state, catalogue_table, root_path_selector, status_msg],
        )

        root_path_selector.change(
            fn=handle_root_change,
            inputs=[sample_state, root_path_selector],
            outputs=[catalogue_table, record_count],
        )

        generate_btn.click(
            fn=synthesize_schema_handler,
            inputs=[output_format, sample_state],
            outputs=[schema_view, mapping_table],
        )

        schema_file.upload(
            fn=import_schema_handler,
            inputs=[schema_file],
            outputs=[schema_view, mapping_table, status_msg],
        )

        preview_btn.click(
            fn=preview_mapping_handler,
            inputs=[sample_state, mapping_table, root_path_selector],
            outputs=[preview_view, mapping_messages],
        )

        export_btn.click(
            fn=export_mapping_handler,
            inputs=[sample_state, mapping_table, export_format, output_filename, root_path_selector],
            outputs=[download_output, mapping_messages],
        )

    with gr.Tab("Relationships"):
        gr.Markdown("### 1. Upload parent and child datasets")
        with gr.Row():
            with gr.Column():
                parent_file = gr.File(label="Parent Dataset", file_types=[".json"])
                parent_status = gr.Textbox(label="Parent Status", interactive=False)
                parent_root_selector = gr.Dropdown(
                    label="Parent Root Path",
                    choices=["(root)"],
                    value="(root)",
                    allow_custom_value=True,
                    interactive=True,
                )
                parent_key_selector = gr.Dropdown(label="Parent Key", choices=[], interactive=False)
            with gr.Column():
                child_file = gr.File(label="Child Dataset", file_types=[".json"])
                child_status = gr.Textbox(label="Child Status", interactive=False)
                child_root_selector = gr.Dropdown(
                    label="Child Root Path",
                    choices=["(root)"],
                    value="(root)",
                    allow_custom_value=True,
                    interactive=True,
                )
                foreign_key_selector = gr.Dropdown(label="Foreign Key", choices=[], interactive=False)

        gr.Markdown("### 2. Configure relationship")
        cardinality = gr.Radio(
            choices=["one-to-one", "one-to-many", "many-to-many"],
            value="one-to-many",
            label="Cardinality",
        )
        embed_as = gr.Textbox(label="Embed As", value="items")
        include_orphans = gr.Checkbox(label="Include parents without matches", value=False)
        join_filename = gr.Textbox(label="Joined Output Filename", placeholder="joined_output.json")

        gr.Markdown("### 3. Join & export")
        join_btn = gr.Button("Join & Download", variant="primary")
        join_download = gr.File(label="Joined Result")
        join_status = gr.Textbox(label="Join Status", interactive=False)
        join_preview = gr.JSON(label="Preview (first 3 rows)")

        parent_file.upload(
            fn=handle_parent_upload,
            inputs=[parent_file],
            outputs=[parent_data_state, parent_root_selector, parent_status, parent_key_selector],
        )

        child_file.upload(
            fn=handle_child_upload,
            inputs=[child_file],
            outputs=[child_data_state, child_root_selector, child_status, foreign_key_selector],
        )

        parent_root_selector.change(
            fn=handle_join_root_change,
            inputs=[parent_data_state, parent_root_selector],
            outputs=[parent_key_selector],
        )

        child_root_selector.change(
            fn=handle_join_root_change,
            inputs=[child_data_state, child_root_selector],
            outputs=[foreign_key_selector],
        )

        join_btn.click(
            fn=join_datasets_handler,
            inputs=[
                parent_data_state,
                child_data_state,
                parent_root_selector,
                child_root_selector,
                parent_key_selector,
                foreign_key_selector,
                cardinality,
                embed_as,
                include_orphans,
                join_filename,
            ],
            outputs=[join_download, join_status, join_preview],
        )

if __name__ == "__main__":
    demo.launch()
