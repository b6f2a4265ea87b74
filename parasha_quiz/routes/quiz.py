"""
Quiz Routes
Attempt lifecycle endpoints: intro, start, answer, finish, results
"""
from flask import Blueprint, request, jsonify, url_for, current_app
from parasha_quiz.extensions import db, active_sessions, attempt_subscribers
from parasha_quiz.models import Quiz, Question
from parasha_quiz.services import AttemptService, StatsService, AttemptSession, load_quiz
from parasha_quiz.services.session_controller import SessionError, FINISHED, reap_idle_sessions
from parasha_quiz.sockets import emit_timer_tick, emit_attempt_finished
from parasha_quiz.utils import require_student, get_current_user_id

quiz_bp = Blueprint('quiz', __name__)


@quiz_bp.errorhandler(SessionError)
def handle_session_error(exc):
    return jsonify({'success': False, 'error': str(exc)}), exc.status_code


def _on_tick(attempt_session, remaining):
    emit_timer_tick(attempt_session.attempt_id, remaining)


def _on_finished(attempt_session):
    active_sessions.pop(attempt_session.attempt_id, None)
    attempt_subscribers.pop(attempt_session.attempt_id, None)
    if attempt_session.state == FINISHED:
        emit_attempt_finished(attempt_session.attempt_id, attempt_session.timed_out)


def _get_owned_session(attempt_id):
    """Live session of the current user, None otherwise"""
    attempt_session = active_sessions.get(attempt_id)
    if attempt_session is None or attempt_session.user_id != get_current_user_id():
        return None
    return attempt_session


def _session_not_found(attempt_id):
    return jsonify({
        'success': False,
        'error': 'No active session for this attempt',
        'attempt_id': attempt_id
    }), 404


def _passing_score(quiz):
    return quiz.get_passing_score(current_app.config['DEFAULT_PASSING_SCORE_PERCENT'])


# ======================= ATTEMPT LIFECYCLE =======================

@quiz_bp.route('/<int:quiz_id>')
@require_student
def quiz_intro(quiz_id):
    """Start screen data: question count, time limit, attempt counter"""
    quiz = load_quiz(quiz_id)
    if quiz is None:
        return jsonify({'success': False, 'error': 'Quiz not found'}), 404

    next_number = AttemptService.next_attempt_number(get_current_user_id(), quiz_id)

    return jsonify({
        'success': True,
        'quiz_id': quiz.id,
        'title': quiz.title,
        'parasha': quiz.parasha_name,
        'total_questions': len(quiz.questions),
        'time_limit_seconds': quiz.time_limit_seconds,
        'attempt_number': next_number,
        'max_attempts': quiz.max_attempts,
        'can_start': next_number <= quiz.max_attempts,
    })


@quiz_bp.route('/<int:quiz_id>/start', methods=['POST'])
@require_student
def start_quiz(quiz_id):
    """Check the attempt limit, then open a new session"""
    reap_idle_sessions(
        active_sessions,
        current_app.config['SESSION_IDLE_SECONDS'],
        exclude=set(attempt_subscribers),
    )

    user_id = get_current_user_id()
    quiz = load_quiz(quiz_id)
    if quiz is None:
        return jsonify({'success': False, 'error': 'Quiz not found'}), 404

    attempt_number = AttemptService.next_attempt_number(user_id, quiz_id)
    if attempt_number > quiz.max_attempts:
        current_app.logger.info(
            'User %s has no attempts left on quiz %s', user_id, quiz_id
        )
        return jsonify({
            'success': False,
            'error': 'No attempts left',
            'results_url': url_for('quiz.results', quiz_id=quiz_id)
        }), 403

    attempt_session = AttemptSession(
        quiz,
        user_id,
        attempt_number,
        tick_interval=current_app.config['TIMER_TICK_SECONDS'],
        on_tick=_on_tick,
        on_finished=_on_finished,
        app=current_app._get_current_object(),
    )
    attempt_id = attempt_session.start()
    active_sessions[attempt_id] = attempt_session

    return jsonify({'success': True, **attempt_session.snapshot()}), 201


@quiz_bp.route('/attempt/<int:attempt_id>')
@require_student
def attempt_state(attempt_id):
    attempt_session = _get_owned_session(attempt_id)
    if attempt_session is None:
        return _session_not_found(attempt_id)
    attempt_session.touch()
    return jsonify({'success': True, **attempt_session.snapshot()})


@quiz_bp.route('/attempt/<int:attempt_id>/select', methods=['POST'])
@require_student
def select_answer(attempt_id):
    attempt_session = _get_owned_session(attempt_id)
    if attempt_session is None:
        return _session_not_found(attempt_id)

    data = request.get_json(silent=True)
    if data is None:
        data = request.form
    choice_id = data.get('choice_id') if isinstance(data, dict) else None
    try:
        choice_id = int(choice_id)
    except (TypeError, ValueError):
        return jsonify({'success': False, 'error': 'choice_id is required'}), 400

    attempt_session.select_answer(choice_id)
    return jsonify({'success': True, **attempt_session.snapshot()})


@quiz_bp.route('/attempt/<int:attempt_id>/next', methods=['POST'])
@require_student
def next_question(attempt_id):
    attempt_session = _get_owned_session(attempt_id)
    if attempt_session is None:
        return _session_not_found(attempt_id)

    attempt_session.next_question()
    return jsonify({'success': True, **attempt_session.snapshot()})


@quiz_bp.route('/attempt/<int:attempt_id>/finish', methods=['POST'])
@require_student
def finish_quiz(attempt_id):
    attempt_session = _get_owned_session(attempt_id)
    if attempt_session is None:
        # Already submitted (e.g. by the countdown): point at the results
        attempt = AttemptService.get_attempt(attempt_id, get_current_user_id())
        if attempt is not None and attempt.is_completed:
            return jsonify({
                'success': True,
                'attempt_id': attempt.id,
                'timed_out': None,
                'results_url': url_for('quiz.attempt_result', quiz_id=attempt.quiz_id, attempt_id=attempt.id)
            })
        return _session_not_found(attempt_id)

    finished_id = attempt_session.finish()
    return jsonify({
        'success': True,
        'attempt_id': finished_id,
        'timed_out': attempt_session.timed_out,
        'results_url': url_for('quiz.attempt_result', quiz_id=attempt_session.quiz.id, attempt_id=finished_id)
    })


@quiz_bp.route('/attempt/<int:attempt_id>/abandon', methods=['POST'])
@require_student
def abandon_quiz(attempt_id):
    attempt_session = _get_owned_session(attempt_id)
    if attempt_session is None:
        return _session_not_found(attempt_id)

    active_sessions.pop(attempt_id, None)
    attempt_subscribers.pop(attempt_id, None)
    abandoned = attempt_session.abandon()
    return jsonify({'success': True, 'attempt_id': attempt_id, 'abandoned': abandoned})


# ======================= RESULTS =======================

@quiz_bp.route('/<int:quiz_id>/results')
@require_student
def results(quiz_id):
    """All of the current user's attempts at a quiz"""
    user_id = get_current_user_id()
    quiz = db.session.get(Quiz, quiz_id)
    if quiz is None:
        return jsonify({'success': False, 'error': 'Quiz not found'}), 404

    attempts = AttemptService.list_attempts(user_id, quiz_id)
    best = AttemptService.resolve_best_attempt(user_id, quiz_id)
    passing = _passing_score(quiz)

    payload = []
    for attempt in attempts:
        entry = attempt.to_dict()
        entry['passed'] = attempt.is_completed and (attempt.score_percent or 0) >= passing
        payload.append(entry)

    return jsonify({
        'success': True,
        'quiz_id': quiz_id,
        'title': quiz.title_hebrew,
        'max_attempts': quiz.max_attempts,
        'passing_score_percent': passing,
        'best_attempt_id': best.id if best else None,
        'can_retry': AttemptService.next_attempt_number(user_id, quiz_id) <= quiz.max_attempts,
        'attempts': payload,
    })


@quiz_bp.route('/<int:quiz_id>/results/<int:attempt_id>')
@require_student
def attempt_result(quiz_id, attempt_id):
    """One attempt with its answer review"""
    attempt = AttemptService.get_attempt(attempt_id, get_current_user_id())
    if attempt is None or attempt.quiz_id != quiz_id:
        return jsonify({'success': False, 'error': 'Attempt not found'}), 404

    quiz = attempt.quiz
    total_questions = Question.query.filter_by(quiz_id=quiz_id).count()
    passing = _passing_score(quiz)

    review = []
    for response in attempt.responses:
        question = response.question
        correct_choice = question.get_correct_choice()
        review.append({
            'question_id': question.id,
            'text': question.question_text_hebrew,
            'aliyah': question.aliyah.name_hebrew if question.aliyah else None,
            'selected_choice_id': response.selected_choice_id,
            'correct_choice_id': correct_choice.id if correct_choice else None,
            'is_correct': response.is_correct,
            'points_earned': response.points_earned,
            'time_spent_seconds': response.time_spent_seconds,
            'explanation': question.explanation_hebrew,
            'choices': [
                {'id': c.id, 'text': c.choice_text_hebrew, 'is_correct': c.is_correct}
                for c in question.answer_choices
            ],
        })

    answered = len(review)
    return jsonify({
        'success': True,
        'attempt': attempt.to_dict(),
        'title': quiz.title_hebrew,
        'max_attempts': quiz.max_attempts,
        'correct_count': sum(1 for r in review if r['is_correct']),
        'answered_count': answered,
        'skipped_count': max(0, total_questions - answered),
        'total_questions': total_questions,
        'passed': attempt.is_completed and (attempt.score_percent or 0) >= passing,
        'responses': review,
    })


@quiz_bp.route('/me/stats')
@require_student
def my_stats():
    stats = StatsService.get_user_stats(get_current_user_id())
    if stats is None:
        return jsonify({'success': True, 'stats': None})
    return jsonify({'success': True, 'stats': stats.to_dict()})
