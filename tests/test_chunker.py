import random
import string

from docchat.ingest.chunking import ChunkingConfig, LineChunker, chunk_text


def generate_lines(count: int = 40, width: int = 60) -> list[str]:
    random.seed(42)
    lines = []
    for _ in range(count):
        words = []
        while sum(len(word) + 1 for word in words) < width:
            length = random.randint(3, 9)
            words.append("".join(random.choice(string.ascii_lowercase) for _ in range(length)))
        lines.append(" ".join(words))
    return lines


def test_page_markers_tag_chunks_with_their_page():
    first = "a" * 300
    second = "b" * 300
    text = "\n".join(["[Page 1]", first, "[Page 2]", second])

    chunks = chunk_text(text, "doc", "doc.pdf")

    assert [chunk.page for chunk in chunks] == [1, 2]
    assert chunks[0].content == first
    assert chunks[1].content.endswith(second)
    assert all("[Page" not in chunk.content for chunk in chunks)


def test_chunk_ids_are_document_id_and_index():
    text = "\n".join(generate_lines(30))

    chunks = chunk_text(text, "doc-7", "notes.txt")

    assert len(chunks) > 1
    assert [chunk.id for chunk in chunks] == [f"doc-7-{index}" for index in range(len(chunks))]
    assert all(chunk.document_id == "doc-7" and chunk.document_name == "notes.txt" for chunk in chunks)


def test_chunks_reproduce_text_without_overlap():
    lines = generate_lines(50)
    text = "\n".join(lines)

    chunks = chunk_text(text, "doc", "doc.txt")

    rebuilt = chunks[0].content
    for previous, current in zip(chunks, chunks[1:]):
        tail = (previous.content + " ")[-50:].strip()
        assert current.content.startswith(tail)
        rebuilt += " " + current.content[len(tail) :].strip()

    assert " ".join(rebuilt.split()) == " ".join(text.split())


def test_chunk_size_is_bounded_by_one_line():
    lines = generate_lines(60)
    longest = max(len(line) for line in lines)

    chunks = chunk_text("\n".join(lines), "doc", "doc.txt")

    assert all(len(chunk.content) <= 450 + longest for chunk in chunks)


def test_long_line_is_never_split():
    line = "x" * 1200

    chunks = chunk_text(line, "doc", "doc.txt")

    assert len(chunks) == 1
    assert chunks[0].content == line


def test_blank_input_produces_no_chunks():
    assert chunk_text("", "doc", "doc.txt") == []
    assert chunk_text("   \n\n  \t", "doc", "doc.txt") == []
    assert chunk_text("[Page 1]\n[Page 2]", "doc", "doc.pdf") == []


def test_marker_inside_line_switches_page():
    text = "intro text\n--- [Page 3] ---\nbody text"

    chunks = chunk_text(text, "doc", "doc.pdf")

    assert len(chunks) == 1
    assert chunks[0].content == "intro text body text"
    assert chunks[0].page == 3


def test_custom_config_without_overlap():
    chunker = LineChunker(ChunkingConfig(chunk_chars=20, overlap_chars=0))

    chunks = list(chunker.chunk("alpha beta\ngamma delta\nepsilon zeta", "doc", "doc.txt"))

    assert [chunk.content for chunk in chunks] == ["alpha beta", "gamma delta", "epsilon zeta"]
    assert [chunk.index for chunk in chunks] == [0, 1, 2]
