"""Tests for the redpen-assess command line interface."""

import pytest
import yaml
from click.testing import CliRunner

from redpen.tools.assessment_cli import main


@pytest.fixture
def workspace(tmp_path):
    config = {
        'openai': {'api_key': ''},
        'storage': {'enabled': True, 'snapshot_dir': str(tmp_path / "snapshots")},
        'tools': {'max_concurrent': 2},
    }
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.safe_dump(config))

    answers_path = tmp_path / "answers.yaml"
    answers_path.write_text(yaml.safe_dump([
        {'questionId': 'q-1', 'selectedOptionId': 'b', 'timeSpentSeconds': 30},
        {'questionId': 'q-3', 'descriptiveAnswer': 'short answer', 'timeSpentSeconds': 90},
    ]))
    return tmp_path, config_path, answers_path


def _invoke(config_path, *args):
    return CliRunner().invoke(main, ['--config', str(config_path), *[str(a) for a in args]])


def _generate(tmp_path, config_path):
    assessment_path = tmp_path / "assessment.yaml"
    result = _invoke(config_path, 'generate', 'Computer Science', '-o', assessment_path)
    assert result.exit_code == 0, result.output
    return assessment_path


def test_generate(workspace):
    tmp_path, config_path, _ = workspace
    assessment_path = _generate(tmp_path, config_path)

    with open(assessment_path) as f:
        data = yaml.safe_load(f)
    assert data['subject'] == "Computer Science"
    assert len(data['questions']) == 10
    assert list((tmp_path / "snapshots" / "assessments").glob("*.yaml"))


def test_evaluate_and_show(workspace):
    tmp_path, config_path, answers_path = workspace
    assessment_path = _generate(tmp_path, config_path)
    report_path = tmp_path / "report.yaml"

    result = _invoke(
        config_path, 'evaluate', '-a', assessment_path, '-s', answers_path,
        '--candidate-id', 'cand-1', '-o', report_path,
    )
    assert result.exit_code == 0, result.output
    assert "Answered: 20% of questions, 120s spent" in result.output

    with open(report_path) as f:
        report = yaml.safe_load(f)
    assert report['candidateId'] == "cand-1"
    assert report['maxScore'] == 100
    assert report['evaluations'][0]['score'] == 10

    result = _invoke(config_path, 'show', report_path)
    assert result.exit_code == 0, result.output
    assert "Score:" in result.output


def test_override_updates_report_and_calibration(workspace):
    tmp_path, config_path, answers_path = workspace
    assessment_path = _generate(tmp_path, config_path)
    report_path = tmp_path / "report.yaml"
    _invoke(config_path, 'evaluate', '-a', assessment_path, '-s', answers_path, '-o', report_path)

    result = _invoke(
        config_path, 'override', '-r', report_path, '-a', assessment_path,
        '-q', 'q-3', '--score', 6, '-n', 'fair answer', '--replay', answers_path,
    )
    assert result.exit_code == 0, result.output

    with open(report_path) as f:
        report = yaml.safe_load(f)
    overrides = report['reviewerOverrides']
    assert len(overrides) == 1
    assert overrides[0]['questionId'] == "q-3"
    assert overrides[0]['previousScore'] == 3
    assert overrides[0]['newScore'] == 6
    assert overrides[0]['note'] == "fair answer"
    # The replayed report keeps the reviewer score
    assert report['evaluations'][2]['score'] == 6
    assert report['totalScore'] == sum(e['score'] for e in report['evaluations'])

    with open(tmp_path / "snapshots" / "calibrations" / "computer-science.yaml") as f:
        calibration = yaml.safe_load(f)
    assert calibration['overrideCount'] == 1
    assert calibration['adjustmentFactor'] == pytest.approx(1.015)


def test_successive_overrides_compound_calibration(workspace):
    tmp_path, config_path, answers_path = workspace
    assessment_path = _generate(tmp_path, config_path)
    report_path = tmp_path / "report.yaml"
    _invoke(config_path, 'evaluate', '-a', assessment_path, '-s', answers_path, '-o', report_path)

    _invoke(config_path, 'override', '-r', report_path, '-a', assessment_path, '-q', 'q-1', '--score', 6)
    result = _invoke(config_path, 'override', '-r', report_path, '-a', assessment_path, '-q', 'q-2', '--score', 4)
    assert result.exit_code == 0, result.output

    with open(tmp_path / "snapshots" / "calibrations" / "computer-science.yaml") as f:
        calibration = yaml.safe_load(f)
    # (6 - 10) / 200 then (4 - 0) / 200
    assert calibration['overrideCount'] == 2
    assert calibration['adjustmentFactor'] == pytest.approx(1.0)

    with open(report_path) as f:
        report = yaml.safe_load(f)
    assert [o['questionId'] for o in report['reviewerOverrides']] == ["q-1", "q-2"]
    assert report['evaluations'][0]['score'] == 6
    assert report['evaluations'][1]['score'] == 4


def test_override_rejects_bad_input(workspace):
    tmp_path, config_path, answers_path = workspace
    assessment_path = _generate(tmp_path, config_path)
    report_path = tmp_path / "report.yaml"
    _invoke(config_path, 'evaluate', '-a', assessment_path, '-s', answers_path, '-o', report_path)

    result = _invoke(config_path, 'override', '-r', report_path, '-a', assessment_path, '-q', 'q-99', '--score', 5)
    assert result.exit_code == 2

    result = _invoke(config_path, 'override', '-r', report_path, '-a', assessment_path, '-q', 'q-1', '--score', 11)
    assert result.exit_code == 2


def test_batch(workspace):
    tmp_path, config_path, answers_path = workspace
    assessment_path = _generate(tmp_path, config_path)
    answers_dir = tmp_path / "attempts"
    answers_dir.mkdir()
    (answers_dir / "alice.yaml").write_text(answers_path.read_text())
    (answers_dir / "bob.yaml").write_text(yaml.safe_dump({'answers': []}))
    summary_path = tmp_path / "summary.yaml"

    result = _invoke(config_path, 'batch', '-a', assessment_path, '-d', answers_dir, '-o', summary_path)
    assert result.exit_code == 0, result.output

    with open(summary_path) as f:
        summary = yaml.safe_load(f)
    assert summary['evaluation_summary']['successful'] == 2
    assert [a['candidate_id'] for a in summary['attempts']] == ["alice", "bob"]
    assert len(list((tmp_path / "snapshots" / "reports").glob("*.yaml"))) == 2


def test_batch_without_answers(workspace):
    tmp_path, config_path, _ = workspace
    assessment_path = _generate(tmp_path, config_path)
    empty_dir = tmp_path / "empty"
    empty_dir.mkdir()

    result = _invoke(config_path, 'batch', '-a', assessment_path, '-d', empty_dir)
    assert result.exit_code == 1


def test_regenerate(workspace):
    tmp_path, config_path, _ = workspace
    assessment_path = _generate(tmp_path, config_path)

    result = _invoke(config_path, 'regenerate', '-a', assessment_path, '-q', 'q-2')
    assert result.exit_code == 0, result.output

    with open(assessment_path) as f:
        data = yaml.safe_load(f)
    assert data['questions'][1]['prompt'].endswith("extra edge condition.)")
    assert not data['questions'][0]['prompt'].endswith("extra edge condition.)")

    result = _invoke(config_path, 'regenerate', '-a', assessment_path, '-q', 'q-42')
    assert result.exit_code == 2
