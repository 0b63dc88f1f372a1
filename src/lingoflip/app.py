"""Interactive CLI application."""
import logging
import random

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from lingoflip.config import Settings, build_generator, build_store, get_settings
from lingoflip.controller import CountMode, ListMode, MAX_CARDS_PER_REQUEST, StudyController
from lingoflip.dashboard import get_score_color, get_score_label, summarize_topics
from lingoflip.errors import LingoFlipError
from lingoflip.navigation import Modal, View
from lingoflip.quiz import display_options

console = Console()
logger = logging.getLogger(__name__)

LETTERS = "abcd"


class SessionExitRequested(Exception):
    """Raised when the user types 'q' or 'menu' inside a screen prompt."""


EXIT_WORDS = ("q", "menu")


def session_prompt(prompt: str, **kwargs) -> str:
    if kwargs.get("choices") is not None:
        kwargs["choices"] = list(kwargs["choices"]) + [w for w in EXIT_WORDS if w not in kwargs["choices"]]
    answer = Prompt.ask(prompt, **kwargs)
    if answer is not None and answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def session_int_prompt(prompt: str, choices: list[str] | None = None, **kwargs) -> int:
    answer = session_prompt(prompt, choices=choices, **kwargs)
    return int(answer)


def configure_logging(settings: Settings) -> None:
    if settings.log_file:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(settings.log_file)
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    else:
        handler = RichHandler(console=Console(stderr=True), show_path=False)
    logging.basicConfig(level=settings.log_level.upper(), handlers=[handler], force=True)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _pick(items: list, raw: str):
    """1-based list index -> item, or None."""
    try:
        index = int(raw)
    except (TypeError, ValueError):
        return None
    return items[index - 1] if 1 <= index <= len(items) else None


def parse_selection(raw: str, size: int) -> list[int]:
    """'all', '1,3', '2-4' -> sorted 0-based indexes within range."""
    raw = (raw or "").strip().lower()
    if raw in ("all", "*"):
        return list(range(size))
    picked = set()
    for part in raw.replace(" ", "").split(","):
        if not part:
            continue
        if "-" in part:
            start, _, end = part.partition("-")
            if start.isdigit() and end.isdigit():
                picked.update(range(int(start), int(end) + 1))
        elif part.isdigit():
            picked.add(int(part))
    return sorted(i - 1 for i in picked if 1 <= i <= size)


def show_welcome():
    console.print(Panel(
        "[bold]LingoFlip[/bold]\n[dim]Master English with AI-powered flashcards[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_banners(ctl: StudyController) -> None:
    state = ctl.state
    if state.notice:
        console.print(Panel(state.notice, border_style="green"))
        ctl.dismiss_notice()
    if state.error:
        console.print(Panel(f"[red]{state.error}[/red]", title="Error", border_style="red"))
        ctl.dismiss_error()


def show_modal_error(ctl: StudyController) -> bool:
    if ctl.state.modal_error:
        console.print(f"[red]{ctl.state.modal_error}[/red]")
        ctl.dismiss_error(in_modal=True)
        return True
    return False


def run_with_status(label: str, func, *args, **kwargs):
    with console.status(f"[cyan]{label}...[/cyan]"):
        return func(*args, **kwargs)


# --- screens ---

def screen_auth(ctl: StudyController) -> None:
    mode = Prompt.ask("\n[bold]Sign in or sign up[/bold]", choices=["signin", "signup", "quit"], default="signin")
    if mode == "quit":
        raise SystemExit(0)
    email = Prompt.ask("Email")
    password = Prompt.ask("Password", password=True)
    if mode == "signin":
        run_with_status("Signing in", ctl.sign_in, email, password)
    else:
        run_with_status("Creating account", ctl.sign_up, email, password)


def render_topics(ctl: StudyController) -> None:
    topics = ctl.state.topics
    if not topics:
        console.print("[yellow]No topics yet. Use 'new' to generate your first deck.[/yellow]")
        return
    table = Table(title="Your Topics")
    table.add_column("#", justify="right")
    table.add_column("Topic", style="cyan")
    table.add_column("Cards", justify="right")
    table.add_column("Created")
    for i, topic in enumerate(topics, 1):
        table.add_row(str(i), topic.name, str(topic.flashcard_count), (topic.created_at or "")[:10])
    console.print(table)
    stats = summarize_topics(topics)
    console.print(f"  Topics: [bold]{stats['topic_count']}[/bold]  |  Cards: [bold]{stats['flashcard_count']}[/bold]")


def screen_dashboard(ctl: StudyController) -> None:
    user = ctl.state.user
    console.print(f"\n[bold]Welcome, {user.display_name}![/bold]" if user else "")
    render_topics(ctl)
    console.print(
        "\n[dim]open N · practice N · edit N · add N · delete N · new · refresh · logout · quit[/dim]"
    )
    command, _, arg = Prompt.ask("[bold]>[/bold]", default="new" if not ctl.state.topics else "").strip().partition(" ")
    command = command.lower()
    topic = _pick(ctl.state.topics, arg.strip())
    if command == "new":
        modal_generate_deck(ctl, None)
    elif command == "refresh":
        run_with_status("Loading topics", ctl.load_topics)
    elif command == "logout":
        run_with_status("Signing out", ctl.sign_out)
    elif command in ("quit", "exit", "q"):
        raise SystemExit(0)
    elif command in ("open", "practice", "edit", "add", "delete"):
        if topic is None:
            console.print("[red]Pick a topic by number, e.g. 'open 1'.[/red]")
        elif command == "open":
            run_with_status("Loading flashcards", ctl.select_topic, topic.id)
        elif command == "practice":
            run_with_status("Loading flashcards", ctl.practice_topic, topic.id)
        elif command == "edit":
            run_with_status("Loading flashcards", ctl.edit_topic_cards, topic.id)
        elif command == "add":
            modal_generate_deck(ctl, topic)
        else:
            modal_confirm_delete_topic(ctl, topic)
    elif command:
        console.print("[red]Unknown command. Try again.[/red]")


def modal_generate_deck(ctl: StudyController, topic) -> None:
    ctl.open_modal(Modal.GENERATE_DECK, topic.id if topic else None)
    title = f'Add Cards to "{topic.name}"' if topic else "Add New Topic / Flashcards"
    console.print(Panel(title, border_style="magenta"))
    try:
        name = topic.name if topic else Prompt.ask("Topic name", default="TOEIC Vocabulary")
        mode = session_prompt("Generate by", choices=["count", "list", "file"], default="count")
        if mode == "count":
            count = session_int_prompt(f"Number of cards (1-{MAX_CARDS_PER_REQUEST})", default="5")
            generation = CountMode(count)
        elif mode == "list":
            generation = ListMode(Prompt.ask("Definitions (comma separated)"))
        else:
            text = ctl.import_definitions(Prompt.ask("File path"))
            if text is None:
                show_modal_error(ctl)
                ctl.close_modal()
                return
            generation = ListMode(text)
    except SessionExitRequested:
        ctl.close_modal()
        return
    except ValueError:
        console.print("[red]Please enter a number.[/red]")
        ctl.close_modal()
        return
    saved = run_with_status(
        "Generating flashcards", ctl.generate_and_save_cards, name, generation, topic.id if topic else None,
    )
    if saved is None:
        show_modal_error(ctl)
        ctl.close_modal()
    else:
        console.print(f"[green]Saved {len(saved)} new cards to {name}.[/green]")


def modal_confirm_delete_topic(ctl: StudyController, topic) -> None:
    ctl.open_modal(Modal.CONFIRM_DELETE_TOPIC, topic.id)
    if Confirm.ask(f'Delete the topic "{topic.name}"? This will also delete all its flashcards.', default=False):
        run_with_status("Deleting topic", ctl.delete_topic, topic.id)
    else:
        ctl.close_modal()


def render_card(ctl: StudyController) -> None:
    deck = ctl.state.deck
    card = deck.current
    if card is None:
        console.print("[yellow]This deck has no cards yet. Use 'add' from the dashboard.[/yellow]")
        return
    if deck.flipped:
        body = f"[bold]{card.definition}[/bold]\n\n[italic]{card.example_sentence}[/italic]"
        console.print(Panel(body, title=f"{card.word} · back", border_style="green"))
    else:
        console.print(Panel(f"[bold]{card.word}[/bold]", title="front", border_style="cyan"))
    console.print(f"[dim]{deck.position}[/dim]")


def screen_study_deck(ctl: StudyController) -> None:
    topic = ctl.state.selected_topic
    console.print(f"\n[bold]Studying: {topic.name}[/bold]")
    render_card(ctl)
    console.print("[dim]f flip · n next · p previous · s shuffle · practice · edit · back[/dim]")
    command = Prompt.ask("[bold]>[/bold]", default="f").strip().lower()
    if command == "f":
        ctl.flip_card()
    elif command == "n":
        if not ctl.next_card():
            console.print("[dim]That was the last card.[/dim]")
    elif command == "p":
        if not ctl.previous_card():
            console.print("[dim]Already at the first card.[/dim]")
    elif command == "s":
        if not ctl.shuffle_deck():
            console.print("[dim]Need at least two cards to shuffle.[/dim]")
    elif command == "practice":
        run_with_status("Loading flashcards", ctl.practice_topic, topic.id)
    elif command == "edit":
        run_with_status("Loading flashcards", ctl.edit_topic_cards, topic.id)
    elif command in ("back", "q"):
        ctl.back_to_dashboard()
    else:
        console.print("[red]Unknown command. Try again.[/red]")


def render_flashcard_table(ctl: StudyController, title: str) -> None:
    table = Table(title=title)
    table.add_column("#", justify="right")
    table.add_column("Word", style="cyan")
    table.add_column("Definition")
    table.add_column("Example", style="dim")
    for i, card in enumerate(ctl.state.deck.cards, 1):
        table.add_row(str(i), card.word, card.definition, card.example_sentence)
    console.print(table)


def screen_practice_selection(ctl: StudyController) -> None:
    topic = ctl.state.selected_topic
    deck = ctl.state.deck
    if deck.is_empty:
        console.print(f"[yellow]No cards in {topic.name} to practice.[/yellow]")
        ctl.back_to_dashboard()
        return
    render_flashcard_table(ctl, f"Practice: {topic.name}")
    raw = Prompt.ask("Cards to test ('all', '1,3', '2-5') or 'back'", default="all")
    if raw.strip().lower() in ("back", "q"):
        ctl.back_to_dashboard()
        return
    ids = [deck.cards[i].id for i in parse_selection(raw, len(deck))]
    run_with_status("Generating test questions", ctl.start_test, ids)


def screen_edit_cards(ctl: StudyController) -> None:
    topic = ctl.state.selected_topic
    render_flashcard_table(ctl, f"Edit: {topic.name}")
    console.print("[dim]edit N · delete N · back[/dim]")
    command, _, arg = Prompt.ask("[bold]>[/bold]", default="back").strip().partition(" ")
    command = command.lower()
    card = _pick(ctl.state.deck.cards, arg.strip())
    if command in ("back", "q"):
        ctl.back_to_dashboard()
    elif command in ("edit", "delete") and card is None:
        console.print("[red]Pick a card by number, e.g. 'edit 2'.[/red]")
    elif command == "edit":
        modal_edit_flashcard(ctl, card)
    elif command == "delete":
        ctl.open_modal(Modal.CONFIRM_DELETE_FLASHCARD, card.id)
        if Confirm.ask(f'Delete the flashcard "{card.word}"?', default=False):
            if not run_with_status("Deleting flashcard", ctl.delete_flashcard, card.id):
                show_modal_error(ctl)
                ctl.close_modal()
        else:
            ctl.close_modal()
    else:
        console.print("[red]Unknown command. Try again.[/red]")


def modal_edit_flashcard(ctl: StudyController, card) -> None:
    ctl.open_modal(Modal.EDIT_FLASHCARD, card.id)
    word = Prompt.ask("Word", default=card.word)
    definition = Prompt.ask("Definition", default=card.definition)
    example = Prompt.ask("Example sentence", default=card.example_sentence)
    updates = {}
    if word != card.word:
        updates["word"] = word
    if definition != card.definition:
        updates["definition"] = definition
    if example != card.example_sentence:
        updates["example_sentence"] = example
    if not updates:
        ctl.close_modal()
        return
    if run_with_status("Saving flashcard", ctl.update_flashcard, card.id, **updates) is None:
        show_modal_error(ctl)
        ctl.close_modal()


def screen_test_active(ctl: StudyController) -> None:
    quiz = ctl.state.quiz
    item = quiz.current
    console.print(f"\n[bold]Question {quiz.cursor + 1} of {quiz.total}[/bold]")
    console.print(Panel(item.question, border_style="cyan"))
    options = display_options(item, ctl.rng)
    for letter, option in zip(LETTERS, options):
        console.print(f"  [cyan]{letter})[/cyan] {option.text}")
    try:
        choice = session_prompt("\nYour answer", choices=list(LETTERS[:len(options)]))
    except SessionExitRequested:
        ctl.back_to_practice()
        return
    selected = options[LETTERS.index(choice)]
    if ctl.answer_question(selected.text):
        console.print("[green]Correct![/green]")
    else:
        correct = item.correct_option
        console.print(f"[red]Incorrect.[/red] Answer: [green]{correct.text if correct else item.original_word}[/green]")
    if item.explanation:
        console.print(f"[dim]{item.explanation}[/dim]")
    Prompt.ask("[dim]Press Enter for the next question[/dim]", default="")
    ctl.next_question()


def screen_test_summary(ctl: StudyController) -> None:
    quiz = ctl.state.quiz
    pct = quiz.percentage()
    color = get_score_color(pct)
    console.print(Panel(
        f"Score: [bold]{quiz.score()}/{quiz.total}[/bold] ({pct}%)\n[{color}]{get_score_label(pct)}[/{color}]",
        title="Test Complete", border_style=color,
    ))
    command = Prompt.ask("retry · back · dashboard", choices=["retry", "back", "dashboard"], default="back")
    if command == "retry":
        ctl.retry_test()
    elif command == "back":
        ctl.back_to_practice()
    else:
        ctl.back_to_dashboard()


SCREENS = {
    View.AUTH: screen_auth,
    View.DASHBOARD: screen_dashboard,
    View.STUDY_DECK: screen_study_deck,
    View.PRACTICE_DECK_SELECTION: screen_practice_selection,
    View.EDIT_DECK_CARDS: screen_edit_cards,
    View.TEST_ACTIVE: screen_test_active,
    View.TEST_SUMMARY: screen_test_summary,
}


def run(ctl: StudyController) -> None:
    show_welcome()
    run_with_status("Loading", ctl.resolve_session)
    while True:
        show_banners(ctl)
        screen = SCREENS[ctl.state.view]
        try:
            screen(ctl)
        except SystemExit:
            console.print("[dim]Happy studying![/dim]")
            break
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except LingoFlipError as e:
            console.print(f"[red]Error: {e}[/red]")
        except Exception as e:
            logger.exception("Unexpected error on the %s screen", ctl.state.view.value)
            console.print(f"[red]Error: {e}[/red]")


def main():
    settings = get_settings()
    configure_logging(settings)
    try:
        store = build_store(settings)
    except LingoFlipError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)
    generator = build_generator(settings)
    ctl = StudyController(store, generator, rng=random.Random(), max_workers=settings.max_generation_workers)
    try:
        run(ctl)
    finally:
        ctl.close()


if __name__ == "__main__":
    main()
