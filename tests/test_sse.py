"""Tests for incremental SSE decoding."""

from handlers.sse import SSEDecoder, SSEEvent


class TestSSEDecoder:

    def test_single_frame(self):
        decoder = SSEDecoder()

        events = decoder.feed(b'event: ping\ndata: {"type":"ping"}\n\n')

        assert events == [SSEEvent(event='ping', data='{"type":"ping"}')]

    def test_frame_split_across_reads(self):
        decoder = SSEDecoder()
        body = b'event: message_stop\ndata: {"type":"message_stop"}\n\n'

        events = []
        for i in range(0, len(body), 7):
            events.extend(decoder.feed(body[i:i + 7]))

        assert events == [SSEEvent(event='message_stop', data='{"type":"message_stop"}')]

    def test_boundary_split_between_newlines(self):
        decoder = SSEDecoder()

        assert decoder.feed(b'data: a\n') == []
        assert decoder.feed(b'\ndata: b\n\n') == [SSEEvent(None, 'a'), SSEEvent(None, 'b')]

    def test_multibyte_character_split(self):
        decoder = SSEDecoder()
        body = 'data: {"text":"héllo ✓"}\n\n'.encode('utf-8')
        split = body.index('✓'.encode('utf-8')) + 1

        events = decoder.feed(body[:split]) + decoder.feed(body[split:])

        assert events == [SSEEvent(None, '{"text":"héllo ✓"}')]

    def test_crlf_and_comments(self):
        decoder = SSEDecoder()

        events = decoder.feed(b': keep-alive\r\n\r\nevent: x\r\ndata: 1\r\n\r\n')

        assert events == [SSEEvent('x', '1')]

    def test_multiline_data(self):
        decoder = SSEDecoder()

        events = decoder.feed(b'data: line1\ndata: line2\n\n')

        assert events[0].data == 'line1\nline2'

    def test_flush_returns_unterminated_frame(self):
        decoder = SSEDecoder()

        assert decoder.feed(b'event: message_stop\ndata: {"type":"message_stop"}') == []
        assert decoder.flush() == [SSEEvent('message_stop', '{"type":"message_stop"}')]
        assert decoder.flush() == []

    def test_bare_cr_line_endings(self):
        decoder = SSEDecoder()

        assert decoder.feed(b'data: a\r\rdata: b\r\r') == [SSEEvent(None, 'a')]
        assert decoder.flush() == [SSEEvent(None, 'b')]

    def test_crlf_split_across_reads(self):
        decoder = SSEDecoder()

        assert decoder.feed(b'data: a\r') == []
        assert decoder.feed(b'\n\r\n') == [SSEEvent(None, 'a')]

    def test_flush_with_lone_trailing_cr(self):
        decoder = SSEDecoder()

        assert decoder.feed(b'data: a\n\r') == []
        assert decoder.flush() == [SSEEvent(None, 'a')]
