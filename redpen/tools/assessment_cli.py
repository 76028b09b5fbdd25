#!/usr/bin/env python3
"""CLI for generating assessments, scoring attempts, and recording reviewer overrides."""

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import click
import yaml
from rich.console import Console
from rich.table import Table

from redpen.libs.config_loader import ConfigType, load_all_configs, load_configs
from redpen.assessment.answers import answer_completion_pct, total_time_spent
from redpen.assessment.batch_evaluator import BatchEvaluator
from redpen.assessment.evaluator import apply_override, replay_report
from redpen.assessment.models import Assessment, CandidateAnswer, Report
from redpen.assessment.snapshot_store import SnapshotStore
from redpen.assessment.sources import select_source

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
LOG = logging.getLogger(__name__)

console = Console()


def _load_yaml(path: Path):
    with open(path, 'r') as f:
        return yaml.safe_load(f)


def _write_yaml(path: Path, data) -> None:
    with open(path, 'w') as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)


def _load_answers(path: Path) -> List[CandidateAnswer]:
    """Answers file is either a list of answers or a mapping with an 'answers' key."""
    data = _load_yaml(path) or []
    if isinstance(data, dict):
        data = data.get("answers") or []
    return [CandidateAnswer.model_validate(item) for item in data]


def _print_report(report: Report) -> None:
    console.print(
        f"\n[bold]Score:[/bold] {report.total_score}/{report.max_score}  "
        f"[bold]Percentile:[/bold] {report.percentile}"
    )

    table = Table(title="Per-question evaluations")
    table.add_column("Question", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Confidence", justify="right")
    table.add_column("Borderline", style="yellow")
    for evaluation in report.evaluations:
        table.add_row(
            evaluation.question_id,
            f"{evaluation.score}/{evaluation.max_score}",
            f"{evaluation.confidence:.2f}",
            "yes" if evaluation.borderline else "",
        )
    console.print(table)

    topics = Table(title="Topics")
    topics.add_column("Topic", style="cyan")
    topics.add_column("Score %", justify="right")
    for point in report.topic_radar:
        topics.add_row(point.topic, str(point.score))
    console.print(topics)

    if report.strongest_topics:
        console.print("[green]Strongest:[/green] " + ", ".join(t.topic for t in report.strongest_topics))
    if report.weakest_topics:
        console.print("[red]Weakest:[/red] " + ", ".join(t.topic for t in report.weakest_topics))


@click.group()
@click.option(
    '--config',
    '-c',
    'config_paths',
    multiple=True,
    type=click.Path(exists=True, path_type=Path),
    help='YAML config file(s) to use instead of the project config/ directory'
)
@click.pass_context
def main(ctx, config_paths):
    """Generate adaptive assessments and score candidate attempts."""
    ctx.ensure_object(dict)
    configs: ConfigType = (
        load_configs(*[str(p) for p in config_paths]) if config_paths else load_all_configs()
    )
    ctx.obj['configs'] = configs
    ctx.obj['store'] = SnapshotStore.from_config(configs)


@main.command()
@click.argument('subject')
@click.option(
    '--output',
    '-o',
    type=click.Path(path_type=Path),
    default=None,
    help='Where to write the assessment YAML (default: <assessment id>.yaml)'
)
@click.pass_context
def generate(ctx, subject: str, output: Optional[Path]):
    """Generate an assessment for SUBJECT."""
    subject = subject.strip() or "Computer Science"
    source = select_source(ctx.obj['configs'])
    assessment = source.generate(subject)
    ctx.obj['store'].save_assessment(assessment)

    output = output or Path(f"{assessment.id}.yaml")
    _write_yaml(output, assessment.to_yaml_dict())

    table = Table(title=assessment.title)
    table.add_column("Id", style="cyan")
    table.add_column("Kind")
    table.add_column("Difficulty")
    table.add_column("Sub-topic")
    table.add_column("Seconds", justify="right")
    for question in assessment.questions:
        table.add_row(
            question.id, question.kind, question.difficulty,
            question.sub_topic, str(question.estimated_seconds),
        )
    console.print(table)
    console.print(f"Reading time: {assessment.reading_time_minutes} min")
    console.print(f"[italic]{assessment.strategy_note}[/italic]")
    console.print(f"[green]✓ Assessment saved to:[/green] {output}")


@main.command()
@click.option('--assessment', '-a', 'assessment_path', type=click.Path(exists=True, path_type=Path), required=True,
              help='Assessment YAML file')
@click.option('--answers', '-s', 'answers_path', type=click.Path(exists=True, path_type=Path), required=True,
              help='Candidate answers YAML file')
@click.option('--candidate-id', default=None, help='Candidate identifier for the report')
@click.option('--output', '-o', type=click.Path(path_type=Path), default=None,
              help='Where to write the report YAML (default: report_<assessment id>.yaml)')
@click.option('--no-calibration', is_flag=True, help='Score without the stored reviewer calibration')
@click.pass_context
def evaluate(ctx, assessment_path, answers_path, candidate_id, output, no_calibration):
    """Score a candidate attempt and write the report."""
    store: SnapshotStore = ctx.obj['store']
    assessment = Assessment.model_validate(_load_yaml(assessment_path))
    answers = _load_answers(answers_path)

    calibration = None if no_calibration else store.calibration_store().snapshot(assessment.subject)
    source = select_source(ctx.obj['configs'])
    report = source.evaluate(assessment, answers, calibration)
    if candidate_id:
        report = report.model_copy(update={"candidate_id": candidate_id})

    store.save_attempt(assessment.id, answers)
    store.save_report(report)

    output = output or Path(f"report_{assessment.id}.yaml")
    _write_yaml(output, report.to_yaml_dict())
    _print_report(report)
    console.print(
        f"Answered: {answer_completion_pct(answers, len(assessment.questions))}% of questions, "
        f"{total_time_spent(answers):.0f}s spent"
    )
    console.print(f"[green]✓ Report saved to:[/green] {output}")


@main.command()
@click.option('--assessment', '-a', 'assessment_path', type=click.Path(exists=True, path_type=Path), required=True,
              help='Assessment YAML file to update in place')
@click.option('--question-id', '-q', required=True, help='Question to regenerate')
@click.pass_context
def regenerate(ctx, assessment_path, question_id):
    """Replace one question with a reframed variant."""
    assessment = Assessment.model_validate(_load_yaml(assessment_path))
    question = select_source(ctx.obj['configs']).regenerate(assessment, question_id)
    if question is None:
        raise click.BadParameter(f"No question {question_id} in {assessment.id}", param_hint='--question-id')

    questions = [question if q.id == question_id else q for q in assessment.questions]
    assessment = assessment.model_copy(update={"questions": questions})
    ctx.obj['store'].save_assessment(assessment)
    _write_yaml(assessment_path, assessment.to_yaml_dict())

    console.print(f"[bold]{question.id}[/bold] ({question.kind}, {question.difficulty})")
    console.print(question.prompt)
    console.print(f"[green]✓ Assessment updated:[/green] {assessment_path}")


@main.command()
@click.option('--report', '-r', 'report_path', type=click.Path(exists=True, path_type=Path), required=True,
              help='Report YAML file to update in place')
@click.option('--assessment', '-a', 'assessment_path', type=click.Path(exists=True, path_type=Path), required=True,
              help='Assessment YAML file the report belongs to')
@click.option('--question-id', '-q', required=True, help='Question to override')
@click.option('--score', 'new_score', type=click.IntRange(0, 10), required=True, help='New score (0-10)')
@click.option('--note', '-n', default="", help='Reviewer note')
@click.option('--replay', 'answers_path', type=click.Path(exists=True, path_type=Path), default=None,
              help='Answers YAML; re-score the attempt with the updated calibration')
@click.pass_context
def override(ctx, report_path, assessment_path, question_id, new_score, note, answers_path):
    """Record a reviewer override and update the subject's calibration."""
    store: SnapshotStore = ctx.obj['store']
    report = Report.model_validate(_load_yaml(report_path))
    assessment = Assessment.model_validate(_load_yaml(assessment_path))

    previous = next((e for e in report.evaluations if e.question_id == question_id), None)
    if previous is None:
        raise click.BadParameter(f"No evaluation for {question_id} in report", param_hint='--question-id')

    calibrations = store.calibration_store()
    report, _ = apply_override(
        report, calibrations.get(assessment.subject), question_id, previous.score, new_score, note
    )
    calibration = calibrations.record_override(assessment.subject, previous.score, new_score)

    if answers_path:
        report = replay_report(assessment, _load_answers(answers_path), calibration, report)

    _write_yaml(report_path, report.to_yaml_dict())
    store.save_report(report)

    console.print(
        f"Calibration for [cyan]{calibration.subject}[/cyan]: factor "
        f"{calibration.adjustment_factor:.3f} after {calibration.override_count} override(s)"
    )
    _print_report(report)


@main.command()
@click.option('--assessment', '-a', 'assessment_path', type=click.Path(exists=True, path_type=Path), required=True,
              help='Assessment YAML file')
@click.option('--answers-dir', '-d', type=click.Path(exists=True, file_okay=False, path_type=Path), required=True,
              help='Directory of answers YAML files, one per candidate (file stem is the candidate id)')
@click.option('--summary', '-o', type=click.Path(path_type=Path), default=None,
              help='Summary YAML path (default: batch_summary_TIMESTAMP.yaml in the answers dir)')
@click.option('--max-concurrent', '-t', type=int, default=None, help='Concurrent evaluations (overrides config)')
@click.pass_context
def batch(ctx, assessment_path, answers_dir, summary, max_concurrent):
    """Score every candidate attempt in a directory."""
    configs = ctx.obj['configs']
    store: SnapshotStore = ctx.obj['store']
    assessment = Assessment.model_validate(_load_yaml(assessment_path))
    attempts = {path.stem: _load_answers(path) for path in sorted(answers_dir.glob("*.yaml"))}
    if not attempts:
        console.print(f"[red]No answer files found in {answers_dir}[/red]")
        raise SystemExit(1)

    calibration = store.calibration_store().snapshot(assessment.subject)
    evaluator = BatchEvaluator(configs, source=select_source(configs), max_concurrent=max_concurrent)
    results = evaluator.evaluate_all(assessment, attempts, calibration)

    for result in results:
        if result.report:
            store.save_report(result.report)

    summary = summary or answers_dir / f"batch_summary_{datetime.now().strftime('%Y%m%d_%H%M%S')}.yaml"
    evaluator.save_summary(assessment, results, summary)

    table = Table(title=f"Batch results for {assessment.id}")
    table.add_column("Candidate", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Percentile", justify="right")
    for result in results:
        if result.report:
            table.add_row(
                result.candidate_id,
                f"{result.report.total_score}/{result.report.max_score}",
                str(result.report.percentile),
            )
        else:
            table.add_row(result.candidate_id, "[red]failed[/red]", "")
    console.print(table)
    console.print(f"[green]✓ Summary saved to:[/green] {summary}")


@main.command()
@click.argument('report_path', type=click.Path(exists=True, path_type=Path))
def show(report_path):
    """Print a saved report."""
    report = Report.model_validate(_load_yaml(report_path))
    _print_report(report)

    timeline = Table(title="Timeline")
    timeline.add_column("#", justify="right")
    timeline.add_column("Accuracy %", justify="right")
    timeline.add_column("Avg time (s)", justify="right")
    for point in report.timeline:
        timeline.add_row(str(point.index), str(point.accuracy_pct), str(point.avg_time))
    console.print(timeline)

    if report.reviewer_overrides:
        console.print("\n[bold cyan]Reviewer overrides:[/bold cyan]")
        for record in report.reviewer_overrides:
            console.print(f"- {record.question_id}: {record.previous_score} -> {record.new_score} ({record.note})")


if __name__ == '__main__':
    main()
