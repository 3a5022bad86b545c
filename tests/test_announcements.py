"""
Tests for announcements and templates
"""
import pytest

from geserver import announcements
from geserver.announcements import AnnouncementGenerator, render_template, resolve_template
from geserver.constants import DEFAULT_TEMPLATE
from geserver.exceptions import NotFoundException, ValidationException


class TestTemplates:

    def test_substitution(self):
        result = render_template('Update {gameId} to {version}', 'g1', '42', None)

        assert result == 'Update g1 to 42'
        assert '{' not in result

    def test_all_occurrences_are_replaced(self):
        result = render_template('{version} {version} {patchNotes}{patchNotes}', 'g1', '7', 'x')

        assert result == '7 7 xx'

    def test_per_title_override_wins(self):
        templates = {'global': 'G', 'perTitle': {'g1': 'T'}}

        assert resolve_template(templates, 'g1') == 'T'
        assert resolve_template(templates, 'g2') == 'G'

    def test_falls_back_to_default(self):
        assert resolve_template({'global': '', 'perTitle': {}}, 'g1') == DEFAULT_TEMPLATE
        assert resolve_template(None, 'g1') == DEFAULT_TEMPLATE

    def test_set_template_scopes(self, store):
        announcements.set_template(store, 'global', 'Global {version}')
        updated = announcements.set_template(store, 'perTitle', 'Only {gameId}', title_id='g1')

        assert updated == {'global': 'Global {version}', 'perTitle': {'g1': 'Only {gameId}'}}
        assert announcements.get_templates(store) == updated

    def test_set_template_invalid_payload(self, store):
        with pytest.raises(ValidationException):
            announcements.set_template(store, 'perTitle', 'x')
        with pytest.raises(ValidationException):
            announcements.set_template(store, 'weird', 'x')


class TestAnnouncementGenerator:

    def test_announce_uses_title_template(self, store):
        announcements.set_template(store, 'perTitle', 'Update {gameId} to {version}', title_id='g1')

        entry = AnnouncementGenerator(store).announce('g1', '42', 'notes')

        assert entry['content'] == 'Update g1 to 42'
        assert entry['kind'] == 'title-specific'
        assert entry['editedAt'] is None
        assert store.get('announcements') == [entry]

    def test_announcements_are_prepended(self, store):
        generator = AnnouncementGenerator(store)
        first = generator.announce('g1', '1', 'a')
        second = generator.announce('g1', '2', 'b')

        assert [a['id'] for a in store.get('announcements')] == [second['id'], first['id']]
        assert first['id'] != second['id']


class TestAnnouncementCrud:

    def test_create_global(self, store):
        entry = announcements.create_announcement(store, 'Hello', 'World')

        assert entry['kind'] == 'global'
        assert entry['titleId'] is None

    def test_create_requires_title_and_content(self, store):
        with pytest.raises(ValidationException):
            announcements.create_announcement(store, '', 'content')

    def test_create_title_specific_requires_title_id(self, store):
        with pytest.raises(ValidationException):
            announcements.create_announcement(store, 't', 'c', kind='title-specific')

    def test_edit_only_changes_given_fields(self, store):
        entry = announcements.create_announcement(store, 'Hello', 'World')

        edited = announcements.edit_announcement(store, entry['id'], content='Everyone')

        assert edited['title'] == 'Hello'
        assert edited['content'] == 'Everyone'
        assert edited['editedAt'] is not None
        assert store.get('announcements')[0] == edited

    def test_edit_unknown_id(self, store):
        with pytest.raises(NotFoundException):
            announcements.edit_announcement(store, 'missing', title='x')

    def test_delete(self, store):
        keep = announcements.create_announcement(store, 'Keep', 'me')
        drop = announcements.create_announcement(store, 'Drop', 'me')

        removed = announcements.delete_announcement(store, drop['id'])

        assert removed == drop
        assert store.get('announcements') == [keep]

    def test_delete_unknown_id(self, store):
        with pytest.raises(NotFoundException):
            announcements.delete_announcement(store, 'missing')

    def test_filtering(self, store):
        announcements.create_announcement(store, 'G', 'global one')
        announcements.create_announcement(store, 'T1', 'for g1', kind='title-specific', title_id='g1')
        announcements.create_announcement(store, 'T2', 'for g2', kind='title-specific', title_id='g2')

        assert [a['title'] for a in announcements.list_announcements(store, kind='global')] == ['G']
        assert [a['title'] for a in announcements.list_announcements(store, 'g1', 'title-specific')] == ['T1']
        assert len(announcements.list_announcements(store)) == 3
