import json
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from answer_pipeline.errors import PipelineError
from answer_pipeline.pipelines.orchestrator import answer_question
from answer_pipeline.types import ProgressEvent, answer_to_dict


class Command(BaseCommand):
    help = "Answer a question with Wikimedia Commons illustrations and print the rendered HTML."

    def add_arguments(self, parser):
        parser.add_argument("question", help="Question to answer")
        parser.add_argument(
            "--api-key",
            default=None,
            help="Gemini API key for the direct path (defaults to GEMINI_API_KEY)",
        )
        parser.add_argument(
            "--model",
            default=None,
            help="Answer model (e.g., gemini-2.0-flash)",
        )
        parser.add_argument(
            "--no-relay",
            action="store_true",
            help="Skip the relay and call the Gemini API directly",
        )
        parser.add_argument(
            "--output",
            default=None,
            help="Write the full answer as JSON to this file",
        )

    def _echo_event(self, event: ProgressEvent):
        self.stderr.write(f"[{event.stage}] {event.message}")

    def handle(self, *args, **options):
        try:
            answer = answer_question(
                options["question"],
                api_key=options["api_key"],
                model_name=options["model"],
                use_relay=not options["no_relay"],
                on_event=self._echo_event,
            )
        except PipelineError as e:
            raise CommandError(str(e)) from e

        if options["output"]:
            out_path = Path(options["output"])
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_text(json.dumps(answer_to_dict(answer), indent=2), encoding="utf-8")
            self.stderr.write(f"Saved answer to {out_path}")

        if answer.unresolved_tokens:
            self.stderr.write(f"Unresolved image references: {', '.join(answer.unresolved_tokens)}")

        self.stdout.write(answer.html)
