"""Prompt templates for the supplier form pipeline."""

SYSTEM_PROMPT = (
    "You are a careful assistant that reads spreadsheet forms and vendor master data. "
    "Always answer with a single complete, valid JSON object and nothing else."
)

EXTRACT_FIELDS_PROMPT = """
You are an expert at analyzing Excel spreadsheets and extracting form field definitions.

Below is every cell of the first worksheet of a supplier form, in row order, as a JSON list of
{{"cell": address, "value": text}} objects. Empty cells are included so that you can see which
cells are blank next to a label.

Find every field the supplier is expected to fill in. For each one report:
- "fieldName": the human-readable label of the field, without a trailing colon
- "cellLocation": the cell (e.g. "B2") where the value must be written; usually the blank cell
  right of or below the label

Only use cell addresses that appear in the listing. Do not invent fields.

Respond ONLY with a JSON object of this shape:
{{"items": [{{"fieldName": "Company Name", "cellLocation": "B2"}}, {{"fieldName": "Email", "cellLocation": "B3"}}]}}

Sheet cells:
{cells}
""".strip()

MATCH_FIELDS_PROMPT = """
You are an expert data mapper. You are given the fields of a supplier form and a vendor's master
data as key/value pairs.

For every form field find the most appropriate value in the master data. Use fuzzy and semantic
matching: "GST No" matches "GST Number", "PAN" matches "Permanent Account Number",
"Vendor Name" matches "Company Name".

Every form field must appear exactly once in the answer. If no master data entry is a confident
match, use an empty string as the value. Never make up values.

Form fields:
{form_fields}

Master data:
{master_data}

Respond ONLY with a JSON object of this shape:
{{"items": [{{"formField": "GST No", "sheetValue": "27ABCDE1234F1Z5"}}, {{"formField": "Fax", "sheetValue": ""}}]}}
""".strip()

CORRECT_FORM_PROMPT = """
You are an AI assistant that corrects a filled Excel form based on user feedback.

User's correction request:
{feedback}

Current sheet data (cell/value pairs, in row order):
{cells}

Work out which cells the request refers to and what their new values should be.
- Only include cells the request clearly asks to change.
- Only use cell addresses that appear in the sheet data.
- Write an empty value only if the user explicitly asks for a cell to be cleared.
- If the request is unclear or you cannot determine a change, return an empty list.

Respond ONLY with a JSON object of this shape:
{{"items": [{{"targetCell": "B2", "value": "New Corp"}}]}}
""".strip()
