"""Flask JSON API over the grading service."""

import logging
from typing import Any, Dict, List

from flask import Flask, jsonify, request
from flask_cors import CORS

from quizmark.tools.grading import (
    FeedbackOutcome,
    GradingService,
    InvalidStateError,
    NotFoundError,
    SubmissionOutcome,
    ValidationError,
)

LOG = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)

# Global grading service instance
grading_service = None


def create_app(service: GradingService):
    """
    Create and configure the Flask app.

    Args:
        service: GradingService instance
    """
    global grading_service
    grading_service = service

    LOG.info("Flask app created and configured")
    return app


@app.errorhandler(ValidationError)
def handle_validation_error(error: ValidationError):
    return jsonify({'error': str(error), 'field': error.field}), 400


# Also catches UnansweredQuestionError, which lists NotFoundError first in its MRO.
@app.errorhandler(NotFoundError)
def handle_not_found(error: NotFoundError):
    return jsonify({'error': str(error), 'identifier': error.identifier}), 404


@app.errorhandler(InvalidStateError)
def handle_invalid_state(error: InvalidStateError):
    return jsonify({'error': str(error)}), 409


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("request body must be a JSON object")
    return data


def _batch_response(results: List[SubmissionOutcome]):
    counts: Dict[str, int] = {}
    for result in results:
        counts[result.status] = counts.get(result.status, 0) + 1
    return jsonify({
        'results': [r.to_dict() for r in results],
        'counts': counts,
    })


# Teacher endpoints

@app.route('/teacher/assignments', methods=['GET'])
def list_teacher_assignments():
    return jsonify(grading_service.list_assignments_for_teacher())


@app.route('/teacher/assignments', methods=['POST'])
def create_assignment():
    assignment = grading_service.create_assignment(_json_body())
    return jsonify(assignment.to_dict()), 201


@app.route('/teacher/assignments/<int:assignment_id>', methods=['GET'])
def get_teacher_assignment(assignment_id: int):
    return jsonify(grading_service.get_assignment(assignment_id))


@app.route('/teacher/assignments/<int:assignment_id>/submissions', methods=['GET'])
def list_assignment_submissions(assignment_id: int):
    submissions = grading_service.list_submissions_for_assignment(assignment_id)
    return jsonify([s.to_dict() for s in submissions])


@app.route('/teacher/assignments/<int:assignment_id>/status', methods=['GET'])
def get_grading_status(assignment_id: int):
    return jsonify(grading_service.grading_status(assignment_id))


@app.route('/teacher/assignments/<int:assignment_id>/auto-grade', methods=['POST'])
def auto_grade_assignment(assignment_id: int):
    return _batch_response(grading_service.auto_grade_assignment(assignment_id))


@app.route('/teacher/assignments/<int:assignment_id>/generate-feedback', methods=['POST'])
def generate_assignment_feedback(assignment_id: int):
    return _batch_response(grading_service.generate_feedback_for_assignment(assignment_id))


@app.route('/teacher/submissions/<int:submission_id>/manual-grade', methods=['POST'])
def manual_grade_answer(submission_id: int):
    data = _json_body()
    question_number = data.get('questionNumber')
    is_correct = data.get('isCorrect')
    marks = data.get('marks')
    if not isinstance(question_number, int) or isinstance(question_number, bool):
        raise ValidationError("must be an integer", field="questionNumber")
    if not isinstance(is_correct, bool):
        raise ValidationError("must be true or false", field="isCorrect")
    if marks is not None and (not isinstance(marks, (int, float)) or isinstance(marks, bool)):
        raise ValidationError("must be a number", field="marks")
    submission = grading_service.manual_grade_answer(submission_id, question_number, is_correct, marks)
    return jsonify(submission.to_dict())


@app.route('/teacher/submissions/<int:submission_id>/generate-feedback', methods=['POST'])
def generate_feedback(submission_id: int):
    result = grading_service.generate_feedback(submission_id)
    body = {**result.to_dict(), 'submission': result.submission.to_dict()}
    if result.outcome is FeedbackOutcome.FAILED:
        body['error'] = "Feedback generation failed; retry to fill in the missing feedback"
        body['retryable'] = True
        return jsonify(body), 502
    if result.outcome is FeedbackOutcome.PARTIAL:
        body['retryable'] = True
        return jsonify(body), 207
    return jsonify(body)


@app.route('/teacher/submissions/<int:submission_id>/finalize', methods=['POST'])
def finalize_submission(submission_id: int):
    data = _json_body()
    final_score = data.get('finalScore')
    final_grade = data.get('finalGrade')
    if final_score is not None and (not isinstance(final_score, (int, float)) or isinstance(final_score, bool)):
        raise ValidationError("must be a number", field="finalScore")
    if final_grade is not None and not isinstance(final_grade, str):
        raise ValidationError("must be a string", field="finalGrade")
    submission = grading_service.finalize_submission(submission_id, final_score, final_grade)
    return jsonify(submission.to_dict())


@app.route('/teacher/submissions/<int:submission_id>/reopen', methods=['POST'])
def reopen_submission(submission_id: int):
    return jsonify(grading_service.reopen_submission(submission_id).to_dict())


# Student endpoints

@app.route('/student/assignments', methods=['GET'])
def list_student_assignments():
    return jsonify(grading_service.list_assignments_for_student())


@app.route('/student/assignments/<int:assignment_id>', methods=['GET'])
def get_student_assignment(assignment_id: int):
    return jsonify(grading_service.get_assignment(assignment_id, redacted=True))


@app.route('/student/assignments/<int:assignment_id>/submit', methods=['POST'])
def submit_answers(assignment_id: int):
    submission = grading_service.submit_answers(assignment_id, _json_body())
    return jsonify(submission.to_dict()), 201


@app.route('/student/submissions', methods=['GET'])
def list_student_submissions():
    student_name = request.args.get('studentName', '')
    return jsonify(grading_service.list_submissions_by_student(student_name))


@app.route('/student/submissions/<int:submission_id>/details', methods=['GET'])
def get_submission_detail(submission_id: int):
    return jsonify(grading_service.get_submission_detail(submission_id))


def run_server(host='127.0.0.1', port=5000, debug=False):
    """
    Run the Flask development server.

    Args:
        host: Host to bind to
        port: Port to bind to
        debug: Whether to run in debug mode
    """
    app.run(host=host, port=port, debug=debug)
