"""
Team Allocator Web Application
==============================

Flask-based web interface for the team allocator.
Provides roster upload, allocation, template download and export.
"""

# =============================================================================
# Imports
# =============================================================================

import io
import json
import math
import os
import traceback
import uuid
from datetime import datetime

import numpy as np
import pandas as pd
from flask import Flask, jsonify, request, send_file
from werkzeug.utils import secure_filename

from team_allocator import AllocationSettings, Role, TeamAllocator
from team_allocator.spreadsheets import (RosterError, assignments_frame, export_allocation,
                                         read_roster, write_template)


# =============================================================================
# Flask App Configuration
# =============================================================================

app = Flask(__name__)
app.config['MAX_CONTENT_LENGTH'] = 16 * 1024 * 1024  # 16MB max file size
app.config['UPLOAD_FOLDER'] = os.environ.get(
    'UPLOAD_FOLDER', os.path.join(os.path.dirname(__file__), 'uploads'))

ALLOWED_EXTENSIONS = ('.xlsx', '.xls', '.csv')
XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

# In-memory cache for allocations (in production, use Redis or database)
solutions_cache = {}


# =============================================================================
# Utility Functions
# =============================================================================

def clean_for_json(obj):
    """
    Recursively clean an object for JSON serialization.
    Handles NaN, Infinity, numpy types, and pandas NA values.
    """
    if isinstance(obj, dict):
        return {k: clean_for_json(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [clean_for_json(item) for item in obj]
    elif isinstance(obj, float):
        if math.isnan(obj) or math.isinf(obj):
            return None
        return obj
    elif isinstance(obj, (np.integer, np.floating)):
        if np.isnan(obj) or np.isinf(obj):
            return None
        return obj.item()
    elif isinstance(obj, np.ndarray):
        return clean_for_json(obj.tolist())
    elif obj is not None and not isinstance(obj, (str, int, bool)) and pd.isna(obj):
        return None
    return obj


def parse_json_field(name, default):
    """Read a JSON-encoded form field; raises ValueError on malformed input."""
    raw = request.form.get(name, '')
    if not raw.strip():
        return default
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"'{name}' is not valid JSON: {e}") from e


def parse_roles(data):
    if data is None:
        return None
    if not isinstance(data, list):
        raise ValueError("'roles' must be a JSON list of role objects")
    return [Role.from_dict(item) for item in data]


# =============================================================================
# Routes
# =============================================================================

@app.route('/')
def index():
    """Describe the service."""
    return jsonify({
        'service': 'team-allocator',
        'endpoints': {
            'POST /upload': 'Run an allocation from a roster file and form parameters',
            'GET /download/<solution_id>/<excel|csv>': 'Download a cached allocation',
            'GET /template': 'Download an empty roster template',
        },
        'roster_columns': ['ID', 'Full name', 'Email', 'Subjects', 'Groups'],
    })


@app.route('/upload', methods=['POST'])
def upload_file():
    """
    Handle roster upload and run the allocator.

    Expects:
        - file: Excel or CSV roster
        - team_count: Number of teams requested (required)
        - subjects: Comma-separated subjects (default: every subject in the roster)
        - roles: JSON list of roles; switches to role-based allocation
        - min_mode: 'global' (default) or 'individual'
        - global_min: Minimum per criterion in global mode (default: 1)
        - individual_mins: JSON object of criterion -> minimum
        - seed: Random seed for the local search
        - any AllocationSettings field (e.g. max_iterations)

    Returns:
        JSON with the formatted allocation or an error message
    """
    try:
        # Validate file upload
        if 'file' not in request.files:
            return jsonify({'error': 'No file uploaded'}), 400

        file = request.files['file']
        if file.filename == '':
            return jsonify({'error': 'No file selected'}), 400

        if not file.filename.lower().endswith(ALLOWED_EXTENSIONS):
            return jsonify({'error': 'Please upload an Excel or CSV file (.xlsx, .xls or .csv)'}), 400

        if not request.form.get('team_count', '').strip():
            return jsonify({'error': 'team_count is required'}), 400

        # Save uploaded file
        os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)
        filename = secure_filename(file.filename)
        unique_filename = f"{uuid.uuid4()}_{filename}"
        filepath = os.path.join(app.config['UPLOAD_FOLDER'], unique_filename)
        file.save(filepath)

        # Get allocation parameters
        team_count = int(request.form['team_count'])
        min_mode = request.form.get('min_mode', 'global')
        global_min = int(request.form.get('global_min', 1))
        individual_mins = parse_json_field('individual_mins', {})
        roles = parse_roles(parse_json_field('roles', None))
        seed = request.form.get('seed', '').strip()
        settings = AllocationSettings.from_mapping(request.form)

        allocator = TeamAllocator(settings=settings, verbose=False,
                                  seed=int(seed) if seed else None)
        students, available_subjects = read_roster(filepath, log=allocator.log)

        if roles:
            criteria = roles
        else:
            selected = [s.strip() for s in request.form.get('subjects', '').split(',') if s.strip()]
            criteria = selected or available_subjects

        result = allocator.allocate(students, criteria, team_count, min_mode=min_mode,
                                    global_min=global_min, individual_mins=individual_mins)

        # Generate solution ID and format for frontend
        solution_id = str(uuid.uuid4())
        formatted = format_solution_for_frontend(result, available_subjects)
        formatted['solution_id'] = solution_id
        formatted['filename'] = filename
        formatted['timestamp'] = datetime.now().isoformat()

        # Cache for later download
        solutions_cache[solution_id] = {
            'result': result,
            'students': students,
            'roles': roles,
            'filepath': filepath,
        }

        return jsonify(clean_for_json(formatted))

    except (RosterError, ValueError) as e:
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        traceback.print_exc()
        return jsonify({'error': str(e)}), 500


@app.route('/download/<solution_id>/<format_type>')
def download_solution(solution_id, format_type):
    """
    Download the allocation in the requested format.

    Args:
        solution_id: UUID of the cached allocation
        format_type: 'excel' or 'csv'

    Returns:
        File download response
    """
    if solution_id not in solutions_cache:
        return jsonify({'error': 'Solution not found'}), 404

    cached = solutions_cache[solution_id]
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    if format_type == 'excel':
        return generate_excel_download(cached, timestamp)
    elif format_type == 'csv':
        return generate_csv_download(cached, timestamp)
    else:
        return jsonify({'error': 'Invalid format'}), 400


@app.route('/template')
def download_template():
    """Download an empty roster workbook."""
    output = io.BytesIO()
    write_template(output)
    output.seek(0)
    return send_file(
        output,
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name='roster_template.xlsx'
    )


# =============================================================================
# Solution Formatting
# =============================================================================

def format_solution_for_frontend(result, available_subjects):
    """Allocation result plus per-team criterion counts."""
    formatted = result.to_dict()
    formatted['available_subjects'] = list(available_subjects)
    for team_data, team in zip(formatted['teams'], result.teams):
        team_data['counts'] = {
            criterion: {
                'count': result.criterion_count(team, criterion),
                'minimum': result.minimums.get(criterion, 1),
            }
            for criterion in result.criteria
        }
    return formatted


def generate_excel_download(cached, timestamp):
    """Workbook with the Assignments, Team Summary and Warnings sheets."""
    output = io.BytesIO()
    export_allocation(cached['result'], cached['students'], output, roles=cached['roles'])
    output.seek(0)
    return send_file(
        output,
        mimetype=XLSX_MIMETYPE,
        as_attachment=True,
        download_name=f'team_assignments_{timestamp}.xlsx'
    )


def generate_csv_download(cached, timestamp):
    """Single flat file with one row per roster student."""
    output = io.StringIO()
    df = assignments_frame(cached['result'], cached['students'], roles=cached['roles'])
    df.to_csv(output, index=False)

    output.seek(0)
    return send_file(
        io.BytesIO(output.getvalue().encode()),
        mimetype='text/csv',
        as_attachment=True,
        download_name=f'team_assignments_{timestamp}.csv'
    )


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    app.run(debug=False, host='0.0.0.0', port=port)
