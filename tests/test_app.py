import pytest
from unittest.mock import MagicMock, patch
from lingoflip.app import (
    SessionExitRequested, main, parse_selection, screen_auth, screen_dashboard, screen_practice_selection,
    screen_study_deck, screen_test_active, screen_test_summary, session_int_prompt, session_prompt,
)
from lingoflip.controller import CountMode
from lingoflip.navigation import View


def test_session_exit_requested_is_exception():
    with pytest.raises(SessionExitRequested):
        raise SessionExitRequested()


def test_session_prompt_raises_on_q():
    with patch("lingoflip.app.Prompt.ask", return_value="q"):
        with pytest.raises(SessionExitRequested):
            session_prompt("test prompt")


def test_session_prompt_raises_on_menu():
    with patch("lingoflip.app.Prompt.ask", return_value="menu"):
        with pytest.raises(SessionExitRequested):
            session_prompt("test prompt")


def test_session_prompt_returns_normal_input():
    with patch("lingoflip.app.Prompt.ask", return_value="hello"):
        result = session_prompt("test prompt")
        assert result == "hello"


def test_session_prompt_accepts_exit_words_as_choices():
    with patch("lingoflip.app.Prompt.ask", return_value="a") as ask:
        session_prompt("answer", choices=["a", "b"])
    assert ask.call_args.kwargs["choices"] == ["a", "b", "q", "menu"]


def test_session_int_prompt_raises_on_q():
    with patch("lingoflip.app.Prompt.ask", return_value="q"):
        with pytest.raises(SessionExitRequested):
            session_int_prompt("count", choices=["1", "2", "3"])


def test_session_int_prompt_returns_normal_input():
    with patch("lingoflip.app.Prompt.ask", return_value="3"):
        result = session_int_prompt("count", choices=["1", "2", "3"])
        assert result == 3


def test_parse_selection():
    assert parse_selection("all", 3) == [0, 1, 2]
    assert parse_selection("1, 3", 3) == [0, 2]
    assert parse_selection("2-4", 5) == [1, 2, 3]
    assert parse_selection("0,9,x,2", 3) == [1]
    assert parse_selection("", 3) == []


def test_screen_auth_signs_up(controller):
    with patch("lingoflip.app.Prompt.ask", side_effect=["signup", "new@example.com", "secret123"]):
        screen_auth(controller)
    assert controller.state.view == View.DASHBOARD


def test_screen_auth_quit(controller):
    with patch("lingoflip.app.Prompt.ask", return_value="quit"):
        with pytest.raises(SystemExit):
            screen_auth(controller)


def test_dashboard_new_topic_by_count(signed_in):
    # command, topic name, mode, count
    with patch("lingoflip.app.Prompt.ask", side_effect=["new", "Travel", "count", "4"]):
        screen_dashboard(signed_in)
    assert signed_in.state.view == View.STUDY_DECK
    assert len(signed_in.state.deck) == 4


def test_dashboard_new_topic_cancelled(signed_in):
    with patch("lingoflip.app.Prompt.ask", side_effect=["new", "Travel", "menu"]):
        screen_dashboard(signed_in)
    assert signed_in.state.view == View.DASHBOARD
    assert signed_in.state.modal is None
    assert signed_in.state.topics == []


def test_dashboard_new_topic_named_like_exit_word(signed_in):
    with patch("lingoflip.app.Prompt.ask", side_effect=["new", "q", "count", "2"]):
        screen_dashboard(signed_in)
    assert signed_in.state.view == View.STUDY_DECK
    assert signed_in.state.selected_topic.name == "q"


def test_dashboard_definition_list_of_one_exit_word(signed_in, fake_generator):
    with patch("lingoflip.app.Prompt.ask", side_effect=["new", "Travel", "list", "menu"]):
        screen_dashboard(signed_in)
    assert fake_generator.flashcard_calls[0]["definitions"] == ["menu"]
    assert signed_in.state.topics[0].flashcard_count == 1


def test_dashboard_delete_topic(signed_in):
    signed_in.generate_and_save_cards("Travel", CountMode(2))
    signed_in.back_to_dashboard()
    with patch("lingoflip.app.Prompt.ask", return_value="delete 1"), \
            patch("lingoflip.app.Confirm.ask", return_value=True):
        screen_dashboard(signed_in)
    assert signed_in.state.topics == []


def test_study_deck_flip_and_back(signed_in):
    signed_in.generate_and_save_cards("Travel", CountMode(2))
    with patch("lingoflip.app.Prompt.ask", return_value="f"):
        screen_study_deck(signed_in)
    assert signed_in.state.deck.flipped
    with patch("lingoflip.app.Prompt.ask", return_value="back"):
        screen_study_deck(signed_in)
    assert signed_in.state.view == View.DASHBOARD


def test_practice_then_answer_all(signed_in):
    signed_in.generate_and_save_cards("Travel", CountMode(2))
    signed_in.practice_topic(signed_in.state.selected_topic.id)
    with patch("lingoflip.app.Prompt.ask", return_value="all"):
        screen_practice_selection(signed_in)
    assert signed_in.state.view == View.TEST_ACTIVE

    # answer 'a' then press Enter, for each question
    with patch("lingoflip.app.Prompt.ask", side_effect=["a", "", "a", ""]):
        screen_test_active(signed_in)
        screen_test_active(signed_in)
    assert signed_in.state.view == View.TEST_SUMMARY
    assert len(signed_in.state.quiz.answers) == 2

    with patch("lingoflip.app.Prompt.ask", return_value="retry"):
        screen_test_summary(signed_in)
    assert signed_in.state.view == View.TEST_ACTIVE
    assert signed_in.state.quiz.answers == []


def test_test_active_q_returns_to_practice(signed_in):
    signed_in.generate_and_save_cards("Travel", CountMode(1))
    signed_in.practice_topic(signed_in.state.selected_topic.id)
    signed_in.start_test([signed_in.state.deck.cards[0].id])
    with patch("lingoflip.app.Prompt.ask", return_value="q"):
        screen_test_active(signed_in)
    assert signed_in.state.view == View.PRACTICE_DECK_SELECTION


def test_main_closes_store_and_generator():
    store, generator = MagicMock(), MagicMock()
    with patch("lingoflip.app.get_settings"), patch("lingoflip.app.configure_logging"), \
            patch("lingoflip.app.build_store", return_value=store), \
            patch("lingoflip.app.build_generator", return_value=generator), \
            patch("lingoflip.app.run", side_effect=KeyboardInterrupt):
        with pytest.raises(KeyboardInterrupt):
            main()
    store.close.assert_called_once()
    generator.close.assert_called_once()
